"""
Compensating-transaction runner.

A saga is an ordered list of forward steps, each optionally paired with an
undo. When a step fails, the undos of the steps that already completed run
in reverse order. An undo that itself fails is recorded as a
CompensationFailure and logged; it never stops the remaining undos.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .errors import SagaFailed
from .logging import get_logger

logger = get_logger(__name__)

Action = Callable[[], Awaitable[Any]]


@dataclass
class SagaStep:
    name: str
    action: Action
    compensation: Optional[Action] = None
    # Alert name logged when this step's undo fails
    failure_event: str = "COMPENSATION_FAILED"


@dataclass
class CompensationFailure:
    saga: str
    step: str
    error: str
    context: Dict[str, Any] = field(default_factory=dict)
    occurred_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class Saga:
    """Runs forward steps and unwinds completed ones on failure."""

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self.name = name
        self.context = context or {}
        self.steps: List[SagaStep] = []
        self.results: Dict[str, Any] = {}

    def step(
        self,
        name: str,
        action: Action,
        compensation: Optional[Action] = None,
        failure_event: str = "COMPENSATION_FAILED",
    ) -> "Saga":
        self.steps.append(SagaStep(name, action, compensation, failure_event))
        return self

    async def run(self) -> Dict[str, Any]:
        completed: List[SagaStep] = []
        for step in self.steps:
            try:
                self.results[step.name] = await step.action()
            except Exception as e:
                logger.warning(
                    "Saga step failed, compensating",
                    saga=self.name,
                    step=step.name,
                    error=str(e),
                    **self.context
                )
                failures = await self._compensate(completed, step, e)
                raise SagaFailed(
                    f"{self.name} failed at {step.name}: {e}",
                    step=step.name,
                    cause=e,
                    compensation_failures=failures,
                ) from e
            completed.append(step)
        return self.results

    async def _compensate(
        self, completed: List[SagaStep], failed_step: SagaStep, cause: Exception
    ) -> List[CompensationFailure]:
        failures: List[CompensationFailure] = []
        for step in reversed(completed):
            if step.compensation is None:
                continue
            try:
                await step.compensation()
            except Exception as e:
                failure = CompensationFailure(
                    saga=self.name,
                    step=step.name,
                    error=str(e),
                    context={**self.context, "failed_step": failed_step.name, "cause": str(cause)},
                )
                failures.append(failure)
                logger.critical(
                    "Compensation failed, manual reconciliation required",
                    alert=step.failure_event,
                    saga=self.name,
                    step=step.name,
                    failed_step=failed_step.name,
                    cause=str(cause),
                    error=str(e),
                    **self.context
                )
        return failures
