"""
Mutable run state for the repair loop.

Owned by a single run; nothing outside the loop reads or writes it.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .attempts import Attempt, AttemptRecord, ExecutionResult
from .base_enums import LoopState
from .context import ContextBundle


@dataclass
class RunState:
    """State threaded through the generate -> execute -> repair loop."""

    # Input
    question: str
    max_attempts: int

    # Context (rebuilt on repair only when configured)
    context: Optional[ContextBundle] = None

    # Loop position
    state: LoopState = LoopState.GENERATING
    attempt_index: int = 1

    # Ordered history of (attempt, result)
    history: List[AttemptRecord] = field(default_factory=list)

    @property
    def last_record(self) -> Optional[AttemptRecord]:
        return self.history[-1] if self.history else None

    @property
    def has_budget(self) -> bool:
        return self.attempt_index < self.max_attempts

    def record(self, attempt: Attempt, result: ExecutionResult) -> None:
        self.history.append(AttemptRecord(attempt=attempt, result=result))
