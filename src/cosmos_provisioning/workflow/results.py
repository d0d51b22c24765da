"""Typed step and run results for the provisioning workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class WorkflowState(StrEnum):
    IDLE = "idle"
    GROUP_CREATED = "group_created"
    ACCOUNT_CREATED = "account_created"
    DATA_POPULATED = "data_populated"
    ACCOUNT_DELETED = "account_deleted"
    GROUP_DELETED = "group_deleted"


class Outcome(StrEnum):
    SUCCEEDED = "succeeded"
    # a create step failed; everything created was torn down
    PROVISIONING_FAILED = "provisioning_failed"
    # a delete step failed; resources may have leaked
    CLEANUP_FAILED = "cleanup_failed"
    SETUP_FAILED = "setup_failed"


@dataclass
class StepResult:
    name: str
    ok: bool
    error: str | None = None
    detail: str = ""
    exception: BaseException | None = field(default=None, repr=False, compare=False)

    @classmethod
    def success(cls, name: str, detail: str = "") -> StepResult:
        return cls(name=name, ok=True, detail=detail)

    @classmethod
    def failure(cls, name: str, exc: BaseException) -> StepResult:
        return cls(name=name, ok=False, error=str(exc) or type(exc).__name__, exception=exc)


@dataclass
class WorkflowResult:
    """Everything a caller can observe about one run.

    ``steps`` holds the provisioning steps in execution order (including the
    account delete); ``cleanup`` holds the resource-group teardown, which is
    empty when no group was created.
    """

    outcome: Outcome
    resource_group_name: str = ""
    account_name: str = ""
    steps: list[StepResult] = field(default_factory=list)
    cleanup: list[StepResult] = field(default_factory=list)
    states: list[WorkflowState] = field(default_factory=lambda: [WorkflowState.IDLE])
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == Outcome.SUCCEEDED

    @property
    def final_state(self) -> WorkflowState:
        return self.states[-1]

    @property
    def failed_steps(self) -> list[StepResult]:
        return [s for s in [*self.steps, *self.cleanup] if not s.ok]

    @classmethod
    def setup_failed(cls, exc: BaseException) -> WorkflowResult:
        return cls(outcome=Outcome.SETUP_FAILED, error=str(exc))
