"""Execution engine state models.

Run status lifecycle and the decisions the node interpreter hands back to
the engine. Status values are stored and exposed verbatim.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class RunStatus(str, Enum):
    """Journey run states.

    State transitions:
        IN_PROGRESS -> WAITING_DELAY -> IN_PROGRESS (claimed by a worker)
                    -> COMPLETED
                    -> FAILED
        COMPLETED and FAILED are final.
    """
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_DELAY = "WAITING_DELAY"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset([RunStatus.COMPLETED, RunStatus.FAILED])


class _Missing:
    """Sentinel for a field path that does not resolve in the context."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


@dataclass(frozen=True)
class Continue:
    """Move on to ``next_node_id`` in the same advance call (None terminates)."""
    next_node_id: Optional[str]


@dataclass(frozen=True)
class Pause:
    """Suspend the run for ``delay_seconds``; ``next_node_id`` follows on resume."""
    delay_seconds: float
    next_node_id: Optional[str]


Decision = Union[Continue, Pause]
