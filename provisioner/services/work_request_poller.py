"""
Polls an asynchronous work request until it reaches a terminal state.

Percent complete reported by the provider tends to stall, so the displayed
value is smoothed: it never goes backwards, creeps up by a small random
increment on each in-progress tick and stays under a ceiling until the
terminal status arrives.
"""

import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import oci

from provisioner.core.config import settings
from provisioner.core.exceptions import (
    CloudRequestError,
    ErrorKind,
    UnexpectedWorkRequestStatusError,
)
from provisioner.core.logging import get_service_logger
from provisioner.core.oci_client import CloudClients
from provisioner.core.progress import ProgressReporter, Section
from provisioner.models.database import WorkRequestStatus

logger = get_service_logger("work_request_poller")


@dataclass(frozen=True)
class PollPolicy:
    interval_seconds: float
    ceiling: float
    max_increment: float
    alternate_probe: bool


CREATE_POLICY = PollPolicy(
    interval_seconds=settings.CREATE_POLL_INTERVAL_SECONDS,
    ceiling=90.0,
    max_increment=1.5,
    alternate_probe=True,
)

DELETE_POLICY = PollPolicy(
    interval_seconds=settings.DELETE_POLL_INTERVAL_SECONDS,
    ceiling=99.0,
    max_increment=2.0,
    alternate_probe=False,
)


@dataclass
class PollOutcome:
    succeeded: bool
    elapsed: float
    ticks: int
    probes: int
    progress: List[float] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def error_text(self) -> str:
        return "\n".join(self.errors)


def format_duration(seconds: float) -> str:
    """Format an elapsed time as 1h 02m 03s, dropping empty leading units."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


class WorkRequestPoller:
    """Fixed-interval polling loop over one work request."""

    def __init__(
        self,
        clients: CloudClients,
        reporter: ProgressReporter,
        section: Section,
        policy: PollPolicy,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.clients = clients
        self.reporter = reporter
        self.section = section
        self.policy = policy
        self._sleep = sleep
        self._clock = clock
        self._random = rng or random.Random()
        self.logger = logger

    def _request(self, operation: str, call: Callable[[str], Any], work_request_id: str) -> Any:
        try:
            return call(work_request_id)
        except oci.exceptions.ServiceError as e:
            self.logger.error(
                "Work request lookup failed",
                work_request_id=work_request_id,
                status=e.status,
                code=e.code,
            )
            raise CloudRequestError(
                operation, e.status, e.code, e.message, kind=ErrorKind.ASYNC_FAILURE
            ) from e

    def poll(self, work_request_id: str) -> PollOutcome:
        """
        Run until the work request succeeds or fails.

        A failed work request is returned, not raised, with its ordered error
        messages; the caller decides which typed error to surface.

        Raises:
            UnexpectedWorkRequestStatusError: Status outside the four expected ones
            CloudRequestError: Work request status or errors could not be fetched
        """
        start = self._clock()
        ticks = 0
        probes = 0
        status = None
        percent = 0.0
        displayed = 0.0
        accumulated = 0.0
        probe = True
        progress: List[float] = []

        self.logger.info(
            "Polling work request",
            work_request_id=work_request_id,
            section=self.section.name,
        )

        while True:
            if probe or status is None:
                status, percent = self._request(
                    "get work request", self.clients.get_work_request, work_request_id
                )
                probes += 1
            ticks += 1
            elapsed = self._clock() - start

            try:
                current = WorkRequestStatus(status)
            except ValueError:
                self.logger.error(
                    "Unexpected work request status",
                    work_request_id=work_request_id,
                    status=status,
                )
                raise UnexpectedWorkRequestStatusError(work_request_id, status)

            if current == WorkRequestStatus.SUCCEEDED:
                self.logger.info(
                    "Work request succeeded",
                    work_request_id=work_request_id,
                    elapsed=round(elapsed, 1),
                    probes=probes,
                )
                return PollOutcome(
                    succeeded=True,
                    elapsed=elapsed,
                    ticks=ticks,
                    probes=probes,
                    progress=progress,
                )

            if current == WorkRequestStatus.FAILED:
                errors = self._request(
                    "list work request errors",
                    self.clients.list_work_request_errors,
                    work_request_id,
                )
                self.logger.error(
                    "Work request failed",
                    work_request_id=work_request_id,
                    error_count=len(errors),
                )
                return PollOutcome(
                    succeeded=False,
                    elapsed=elapsed,
                    ticks=ticks,
                    probes=probes,
                    progress=progress,
                    errors=errors,
                )

            if current == WorkRequestStatus.ACCEPTED:
                self.reporter.update(self.section, f"accepted [{format_duration(elapsed)}]")
            else:
                displayed = min(max(percent + accumulated, displayed), self.policy.ceiling)
                progress.append(displayed)
                self.reporter.update(
                    self.section,
                    f"in progress {displayed:.0f}% [{format_duration(elapsed)}]",
                )
                accumulated += self._random.random() * self.policy.max_increment

            self._sleep(self.policy.interval_seconds)
            if self.policy.alternate_probe:
                probe = not probe
