"""Execution engine package.

Durable journey execution with:
- Pure node interpreter (Continue / Pause decisions)
- Per-step persisted run state, re-entrant advance/resume
- Delays realised as persisted resume times, not held tasks
- Two-phase claim-then-process resume worker
- Staleness-based recovery sweeper
"""

from .models import (
    RunStatus,
    TERMINAL_STATUSES,
    MISSING,
    Continue,
    Pause,
    Decision,
)
from .errors import (
    JourneyError,
    JourneyNotFoundError,
    RunNotFoundError,
    NodeEvaluationError,
    DeliveryError,
)
from .conditions import (
    evaluate_condition,
    evaluate_operator,
    get_nested_value,
    is_known_operator,
)
from .interpreter import NodeInterpreter, parse_node
from .engine import JourneyEngine
from .worker import ResumeWorker
from .recovery import RecoverySweeper

__all__ = [
    # Models
    "RunStatus",
    "TERMINAL_STATUSES",
    "MISSING",
    "Continue",
    "Pause",
    "Decision",
    # Errors
    "JourneyError",
    "JourneyNotFoundError",
    "RunNotFoundError",
    "NodeEvaluationError",
    "DeliveryError",
    # Conditions
    "evaluate_condition",
    "evaluate_operator",
    "get_nested_value",
    "is_known_operator",
    # Interpreter
    "NodeInterpreter",
    "parse_node",
    # Engine
    "JourneyEngine",
    # Worker
    "ResumeWorker",
    # Recovery
    "RecoverySweeper",
]
