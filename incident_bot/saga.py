"""Ordered multi-step workflows with per-step failure isolation.

A saga is a list of :class:`SagaStep` objects executed in order against a
shared context. A failing step tagged ``critical`` stops the run; any other
failure is recorded in the :class:`SagaReport` and the run continues. Nothing
is rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Sequence, TypeVar

import structlog

from incident_bot.errors import ExternalCallTimeout, describe_error

ContextT = TypeVar("ContextT")

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"

KIND_TIMEOUT = "timeout"
KIND_ERROR = "error"


@dataclass(frozen=True)
class SagaStep(Generic[ContextT]):
    name: str
    action: Callable[[ContextT], Any]
    critical: bool = False
    when: Callable[[ContextT], bool] | None = None


@dataclass(frozen=True)
class StepOutcome:
    name: str
    status: str
    critical: bool = False
    kind: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


@dataclass
class SagaReport:
    outcomes: List[StepOutcome] = field(default_factory=list)
    aborted_at: str | None = None

    @property
    def succeeded(self) -> bool:
        """True unless a critical step failed."""

        return self.aborted_at is None

    @property
    def failed_steps(self) -> List[str]:
        return [outcome.name for outcome in self.outcomes if outcome.status == STATUS_FAILED]

    def outcome(self, name: str) -> StepOutcome | None:
        for item in self.outcomes:
            if item.name == name:
                return item
        return None

    def as_dict(self) -> dict[str, str]:
        return {outcome.name: outcome.status for outcome in self.outcomes}


def run_saga(steps: Sequence[SagaStep[ContextT]], context: ContextT) -> SagaReport:
    """Run *steps* in order against *context* and return the outcome report."""

    report = SagaReport()
    log = structlog.get_logger()

    for step in steps:
        if step.when is not None and not step.when(context):
            report.outcomes.append(StepOutcome(step.name, STATUS_SKIPPED, step.critical))
            continue

        try:
            step.action(context)
        except Exception as exc:
            kind = KIND_TIMEOUT if isinstance(exc, ExternalCallTimeout) else KIND_ERROR
            error = describe_error(exc)
            report.outcomes.append(StepOutcome(step.name, STATUS_FAILED, step.critical, kind, error))
            if step.critical:
                log.error("saga_step_failed", step=step.name, kind=kind, error=error, critical=True, exc_info=exc)
                report.aborted_at = step.name
                return report
            log.warning("saga_step_failed", step=step.name, kind=kind, error=error, critical=False)
            continue

        report.outcomes.append(StepOutcome(step.name, STATUS_OK, step.critical))

    return report
