"""Single-shot HTTP liveness probe for container health checks."""

__version__ = "0.1.0"
