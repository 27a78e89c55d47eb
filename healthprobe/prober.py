"""HTTP liveness probe for container orchestration.

Issue a single bounded HTTP GET against a target URL and classify the
outcome for a container runtime health hook.

Outcomes:
    HEALTHY (0): A response arrived with a status code in [200, 400).
    TRANSPORT_ERROR (1): No response was obtained (refused, DNS, timeout).
    UNHEALTHY_STATUS (2): A response arrived with any other status code.
"""

import time
from enum import IntEnum
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, model_validator

from healthprobe.core.logging_config import get_logger
from healthprobe.deadline import Deadline, DeadlineTransport

logger = get_logger(__name__)

# Redirect hop limit; exceeding it is a transport error.
MAX_REDIRECTS = 10


# ═══════════════════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════

class ProbeOutcome(IntEnum):
    """Terminal state of a probe. The value is the process exit code."""
    HEALTHY = 0
    TRANSPORT_ERROR = 1
    UNHEALTHY_STATUS = 2


def is_success_status(status_code: int) -> bool:
    """Return True for status codes in the healthy range [200, 400)."""
    return 200 <= status_code < 400


class ProbeResult(BaseModel):
    """The classified outcome of a single probe.

    Attributes:
        outcome: Which of the three terminal states the probe reached.
        status_code: HTTP status of the final response, absent on transport errors.
        detail: Error description, present only on transport errors.
        elapsed: Wall-clock duration of the probe in seconds.

    Example:
        >>> ProbeResult.healthy(204).message
        'OK 204'
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    outcome: ProbeOutcome
    status_code: Optional[int] = Field(default=None, ge=0)
    detail: Optional[str] = None
    elapsed: float = Field(default=0.0, ge=0.0)

    @model_validator(mode='after')
    def validate_outcome_fields(self) -> 'ProbeResult':
        """Ensure each outcome carries the field its message is built from."""
        if self.outcome == ProbeOutcome.TRANSPORT_ERROR:
            if not self.detail:
                raise ValueError("A transport error requires a detail message.")
            if self.status_code is not None:
                raise ValueError("A transport error cannot carry a status code.")
            return self

        if self.status_code is None:
            raise ValueError(f"Outcome {self.outcome.name} requires a status code.")
        if (self.outcome == ProbeOutcome.HEALTHY) != is_success_status(self.status_code):
            raise ValueError(
                f"Status {self.status_code} is inconsistent with outcome {self.outcome.name}."
            )
        return self

    @classmethod
    def healthy(cls, status_code: int, elapsed: float = 0.0) -> 'ProbeResult':
        return cls(outcome=ProbeOutcome.HEALTHY, status_code=status_code, elapsed=elapsed)

    @classmethod
    def unhealthy(cls, status_code: int, elapsed: float = 0.0) -> 'ProbeResult':
        return cls(outcome=ProbeOutcome.UNHEALTHY_STATUS, status_code=status_code, elapsed=elapsed)

    @classmethod
    def transport_error(cls, detail: str, elapsed: float = 0.0) -> 'ProbeResult':
        return cls(outcome=ProbeOutcome.TRANSPORT_ERROR, detail=detail, elapsed=elapsed)

    @classmethod
    def from_status(cls, status_code: int, elapsed: float = 0.0) -> 'ProbeResult':
        """Classify a received status code."""
        if is_success_status(status_code):
            return cls.healthy(status_code, elapsed)
        return cls.unhealthy(status_code, elapsed)

    @property
    def is_healthy(self) -> bool:
        return self.outcome == ProbeOutcome.HEALTHY

    @property
    def exit_code(self) -> int:
        return int(self.outcome)

    @property
    def message(self) -> str:
        """The one-line report for this result, without a trailing newline."""
        if self.outcome == ProbeOutcome.HEALTHY:
            return f"OK {self.status_code}"
        if self.outcome == ProbeOutcome.UNHEALTHY_STATUS:
            return f"non-ok status: {self.status_code}"
        return f"healthcheck error: {self.detail}"


# ═══════════════════════════════════════════════════════════════════════════
# PROBE EXECUTION
# ═══════════════════════════════════════════════════════════════════════════

def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


def _fetch_status(client: httpx.Client, request: httpx.Request, deadline: Deadline) -> int:
    """Send `request`, following redirects by hand, and return the final status.

    Each hop gets only the time left on the deadline. A response whose headers
    arrive after the deadline is treated as a timeout, not as a status.
    """
    for _ in range(MAX_REDIRECTS + 1):
        remaining = deadline.remaining()
        if remaining <= 0:
            raise httpx.ReadTimeout(deadline.describe(), request=request)
        request.extensions = {**request.extensions, "timeout": httpx.Timeout(remaining).as_dict()}

        response = client.send(request, stream=True)
        try:
            if deadline.expired:
                raise httpx.ReadTimeout(deadline.describe(), request=request)
            if response.next_request is None:
                return response.status_code
            request = response.next_request
        finally:
            response.close()

    raise httpx.TooManyRedirects(
        f"Exceeded maximum allowed redirects ({MAX_REDIRECTS}).", request=request
    )


def probe(
    url: str,
    timeout: int,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> ProbeResult:
    """Issue one HTTP GET against `url` and classify the outcome.

    The whole probe, redirects included, is bound to a single deadline of
    `timeout` seconds. The default transport caps every socket operation at
    the time left, so slow or trickling servers cannot extend it. Only the
    status line and headers are awaited; each response stream is closed
    without reading the body. Redirects are followed up to MAX_REDIRECTS hops.

    Args:
        url: Target URL.
        timeout: Upper bound in seconds for the entire request.
        transport: Optional transport override, used by tests.

    Returns:
        ProbeResult: The classified outcome. Transport failures are returned,
            not raised.
    """
    logger.debug("probe_started", timeout=timeout)
    started = time.monotonic()
    deadline = Deadline(timeout)

    try:
        with httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
            transport=DeadlineTransport(deadline) if transport is None else transport,
        ) as client:
            status_code = _fetch_status(client, client.build_request("GET", url), deadline)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        elapsed = time.monotonic() - started
        logger.info(
            "probe_transport_error",
            error=_describe(exc),
            error_type=exc.__class__.__name__,
            elapsed_ms=round(elapsed * 1000, 1),
        )
        return ProbeResult.transport_error(_describe(exc), elapsed)

    elapsed = time.monotonic() - started
    result = ProbeResult.from_status(status_code, elapsed)
    logger.debug(
        "probe_completed",
        status_code=status_code,
        outcome=result.outcome.name,
        elapsed_ms=round(elapsed * 1000, 1),
    )
    return result
