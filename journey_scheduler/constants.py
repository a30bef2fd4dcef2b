"""Centralized constants for journey node types, operators and engine defaults.

This module provides a single source of truth for the string values that
appear in stored journey definitions and run rows.
"""

from typing import FrozenSet

# =============================================================================
# NODE TYPES
# =============================================================================

NODE_TYPE_MESSAGE = 'MESSAGE'
NODE_TYPE_DELAY = 'DELAY'
NODE_TYPE_CONDITIONAL = 'CONDITIONAL'

JOURNEY_NODE_TYPES: FrozenSet[str] = frozenset([
    NODE_TYPE_MESSAGE,
    NODE_TYPE_DELAY,
    NODE_TYPE_CONDITIONAL,
])

# =============================================================================
# CONDITIONAL OPERATORS
# =============================================================================

ORDERING_OPERATORS: FrozenSet[str] = frozenset(['>', '<', '>=', '<='])

EQUALITY_OPERATORS: FrozenSet[str] = frozenset(['=', '==', '!='])

CONDITION_OPERATORS: FrozenSet[str] = ORDERING_OPERATORS | EQUALITY_OPERATORS

# =============================================================================
# ENGINE DEFAULTS
# =============================================================================

DEFAULT_WORKER_INTERVAL_MS = 5000
DEFAULT_WORKER_BATCH_SIZE = 1000  # can be tuned based on load
DEFAULT_RECOVERY_TIMEOUT_MINUTES = 10
DEFAULT_MAX_STEPS_PER_ADVANCE = 1000

RESUME_WORKER_JOB_ID = 'journey-resume-worker'
