"""
Sequential candidate probing.

The gateway's status and inventory endpoints differ between firmware
builds, so the adapter walks an ordered candidate list. Each attempt
reports a verdict: SUCCESS stops the walk, RETRYABLE moves on to the next
candidate, FATAL aborts. Candidates are never tried concurrently, to
avoid overloading the device.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from ..infrastructure.logging import Timer

logger = structlog.get_logger()


class RequestShape(str, Enum):
    FORM_POST = "form_post"
    JSON_POST = "json_post"
    QUERY_GET = "query_get"


class ProbeVerdict(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class Candidate:
    path: str
    shape: RequestShape = RequestShape.JSON_POST


@dataclass
class ProbeAttempt:
    candidate: Candidate
    verdict: ProbeVerdict
    body: Any = None
    detail: str | None = None
    duration_ms: float = 0.0


@dataclass
class ProbeReport:
    attempts: list[ProbeAttempt] = field(default_factory=list)

    @property
    def winner(self) -> ProbeAttempt | None:
        if self.attempts and self.attempts[-1].verdict == ProbeVerdict.SUCCESS:
            return self.attempts[-1]
        return None

    @property
    def aborted(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].verdict == ProbeVerdict.FATAL

    @property
    def tried(self) -> list[Candidate]:
        return [attempt.candidate for attempt in self.attempts]


def expand_candidates(paths: Sequence[str], shapes: Sequence[RequestShape]) -> list[Candidate]:
    """Every shape for the first path, then every shape for the next."""
    return [Candidate(path, shape) for path in paths for shape in shapes]


async def probe_sequentially(
    candidates: Sequence[Candidate],
    attempt: Callable[[Candidate], Awaitable[ProbeAttempt]],
) -> ProbeReport:
    """
    Try candidates in order until one succeeds or one is fatal.

    Args:
        candidates: Ordered candidate list
        attempt: Coroutine performing a single attempt

    Returns:
        ProbeReport listing exactly the candidates that were attempted
    """
    report = ProbeReport()
    for candidate in candidates:
        with Timer() as t:
            result = await attempt(candidate)
        result.duration_ms = t.duration_ms
        report.attempts.append(result)

        logger.debug(
            "Probe attempt finished",
            path=candidate.path,
            shape=candidate.shape.value,
            verdict=result.verdict.value,
            detail=result.detail,
            duration_ms=result.duration_ms,
        )

        if result.verdict != ProbeVerdict.RETRYABLE:
            break
    return report
