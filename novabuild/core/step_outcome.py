# novabuild/core/step_outcome.py
"""
Canonical step-level outcome types.

These are STEP outcomes, not BUILD outcomes. A degraded SQL step still lets
the build continue.
"""
from enum import Enum
from dataclasses import dataclass
from typing import Optional

from novabuild.core.constants import StepKind


class StepOutcome(Enum):
    """Step-level outcomes."""
    SUCCESS = "success"
    DEGRADED = "degraded"       # SQL step failed; build continues
    FAILED = "failed"           # Code step exhausted its attempts


@dataclass
class StepExecutionResult:
    """Result of a single step execution."""
    outcome: StepOutcome
    step_index: int
    kind: StepKind
    description: str = ""
    attempts: int = 1
    explanation: Optional[str] = None
    error_details: Optional[str] = None

    def is_successful(self) -> bool:
        return self.outcome == StepOutcome.SUCCESS

    def is_degraded(self) -> bool:
        return self.outcome == StepOutcome.DEGRADED

    def is_fatal(self) -> bool:
        """Only a failed code step ends the build."""
        return self.outcome == StepOutcome.FAILED
