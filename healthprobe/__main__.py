"""Allow `python -m healthprobe`."""

from healthprobe.main import run

run()
