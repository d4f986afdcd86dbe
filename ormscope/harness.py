"""Sequential, timed, fault-isolated execution of named scenarios.

A scenario is a title plus a zero-argument callable. The harness announces it,
times it, converts any exception it raises into a ``Failure`` outcome and
always reports the elapsed time, so one broken scenario never stops the run.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from datetime import datetime, timezone
from typing import (
    Annotated,
    Any,
    Callable,
    ContextManager,
    Iterable,
    Iterator,
    Literal,
    Optional,
    Protocol,
    Union,
)

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

Work = Callable[[], Any]

NANOS_PER_MILLI = 1_000_000


class InvalidScenario(ValueError):
    """Raised when a scenario is submitted without a title or a unit of work."""


class Success(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"


class Failure(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["failure"] = "failure"
    error_kind: str
    error_message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> Failure:
        try:
            message = str(exc)
        except Exception:
            message = f"<unprintable {type(exc).__name__}>"
        return cls(error_kind=type(exc).__name__, error_message=message)


Outcome = Annotated[Union[Success, Failure], Field(discriminator="status")]


class Scenario(BaseModel):
    """A named unit of benchmarked work."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    title: str
    work: Work

    @classmethod
    def of(cls, title: Optional[str], work: Optional[Work]) -> Scenario:
        if not isinstance(title, str) or not title.strip():
            raise InvalidScenario("scenario title must be a non-empty string")
        if work is None or not callable(work):
            raise InvalidScenario(f"scenario {title!r} has no callable unit of work")
        return cls(title=title, work=work)


class ScenarioResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    started_at: datetime
    elapsed_ms: int = Field(ge=0)
    outcome: Outcome
    queries: Optional[int] = Field(default=None, ge=0)

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Success)


class QueryTally(Protocol):
    count: int


class QueryCounter(Protocol):
    def track(self) -> ContextManager[QueryTally]: ...


class _Stopwatch:
    __slots__ = ("started", "elapsed_ms", "queries")

    def __init__(self, started: int) -> None:
        self.started = started
        self.elapsed_ms = 0
        self.queries: Optional[int] = None


class Harness:
    """Runs scenarios one at a time and reports each one exactly once.

    ``clock`` is a monotonic nanosecond counter and ``now`` a wall clock used
    for ``ScenarioResult.started_at``; both can be replaced for tests. When a
    ``query_counter`` is given, the statements issued by each unit of work are
    counted and reported alongside the timing.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], int] = time.perf_counter_ns,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        log: Optional[logging.Logger] = None,
        query_counter: Optional[QueryCounter] = None,
    ) -> None:
        self.clock = clock
        self.now = now
        self.log = log or logger
        self.query_counter = query_counter
        self._lock = threading.RLock()

    def section(self, name: str) -> None:
        self.log.info("\n=== %s ===\n", name)

    def run(self, title: Optional[str], work: Optional[Work]) -> ScenarioResult:
        return self.run_scenario(Scenario.of(title, work))

    def run_scenario(self, scenario: Scenario) -> ScenarioResult:
        with self._lock:
            self.log.info("--- %s ---", scenario.title)
            started_at = self.now()
            outcome: Union[Success, Failure] = Success()

            with self._stopwatch() as stopwatch:
                try:
                    with self._tally(stopwatch):
                        scenario.work()
                except Exception as exc:
                    outcome = Failure.from_exception(exc)
                    self.log.error("%s: %s", outcome.error_kind, outcome.error_message)

            return ScenarioResult(
                title=scenario.title,
                started_at=started_at,
                elapsed_ms=stopwatch.elapsed_ms,
                outcome=outcome,
                queries=stopwatch.queries,
            )

    def run_all(
        self, scenarios: Iterable[Union[Scenario, tuple[str, Work]]]
    ) -> list[ScenarioResult]:
        results = []
        for scenario in scenarios:
            if not isinstance(scenario, Scenario):
                if not isinstance(scenario, tuple) or len(scenario) != 2:
                    raise InvalidScenario(
                        f"expected a Scenario or a (title, work) pair, got {scenario!r}"
                    )
                scenario = Scenario.of(*scenario)
            results.append(self.run_scenario(scenario))
        return results

    @contextlib.contextmanager
    def _stopwatch(self) -> Iterator[_Stopwatch]:
        stopwatch = _Stopwatch(self.clock())
        try:
            yield stopwatch
        finally:
            stopwatch.elapsed_ms = max(
                0, (self.clock() - stopwatch.started) // NANOS_PER_MILLI
            )
            if stopwatch.queries is None:
                self.log.info("--- end --- (%dms)\n", stopwatch.elapsed_ms)
            else:
                self.log.info(
                    "--- end --- (%dms, %d queries)\n",
                    stopwatch.elapsed_ms,
                    stopwatch.queries,
                )

    @contextlib.contextmanager
    def _tally(self, stopwatch: _Stopwatch) -> Iterator[None]:
        if self.query_counter is None:
            yield
            return

        with self.query_counter.track() as tally:
            try:
                yield
            finally:
                stopwatch.queries = tally.count
