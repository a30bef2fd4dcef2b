"""Node interpreter: decides what follows a single journey node.

Pure with respect to persistence. Given one node definition and the
patient context it returns a decision:

- ``Continue(next_node_id)`` for MESSAGE and CONDITIONAL nodes
- ``Pause(delay_seconds, next_node_id)`` for DELAY nodes

The interpreter never sleeps and never dispatches messages; the engine
acts on the decision.
"""

from typing import Any, Dict, Union

from pydantic import ValidationError

from journey_scheduler.constants import JOURNEY_NODE_TYPES
from journey_scheduler.core.logging import get_logger
from journey_scheduler.models.journey import (
    ConditionalNode,
    DelayNode,
    JourneyNode,
    MessageNode,
    journey_node_adapter,
)
from .conditions import evaluate_condition, is_known_operator
from .errors import NodeEvaluationError
from .models import Continue, Decision, Pause

logger = get_logger(__name__)


def parse_node(raw: Union[Dict[str, Any], JourneyNode]) -> JourneyNode:
    """Validate a stored node definition into its typed variant.

    Raises:
        NodeEvaluationError: unknown ``type`` or malformed node
    """
    if isinstance(raw, (MessageNode, DelayNode, ConditionalNode)):
        return raw

    node_id = raw.get("id") if isinstance(raw, dict) else None
    node_type = raw.get("type") if isinstance(raw, dict) else type(raw).__name__
    if not isinstance(node_type, str) or node_type not in JOURNEY_NODE_TYPES:
        raise NodeEvaluationError(
            node_id, f"Unknown node type {node_type!r}, expected one of {sorted(JOURNEY_NODE_TYPES)}"
        )

    try:
        return journey_node_adapter.validate_python(raw)
    except ValidationError as e:
        raise NodeEvaluationError(
            node_id, f"Malformed {node_type} node: {e.errors()[0]['msg']}"
        ) from e


class NodeInterpreter:
    """Maps a node plus patient context to a Continue/Pause decision."""

    def __init__(self, strict_operators: bool = False):
        """Initialize interpreter.

        Args:
            strict_operators: Raise NodeEvaluationError for unknown conditional
                operators instead of evaluating them to False
        """
        self.strict_operators = strict_operators

    def evaluate(self, node: Union[Dict[str, Any], JourneyNode],
                 context: Dict[str, Any]) -> Decision:
        """Decide the next step for ``node``.

        Raises:
            NodeEvaluationError: the node cannot be interpreted
        """
        node = parse_node(node)

        if isinstance(node, MessageNode):
            return Continue(node.next_node_id)

        if isinstance(node, DelayNode):
            logger.info("DELAY node scheduling delay",
                        node_id=node.id,
                        duration_seconds=node.duration_seconds)
            return Pause(node.duration_seconds, node.next_node_id)

        if isinstance(node, ConditionalNode):
            return self._evaluate_conditional(node, context)

        # unreachable while JourneyNode stays a closed union
        raise NodeEvaluationError(getattr(node, "id", None), f"Unhandled node variant {type(node).__name__}")

    def _evaluate_conditional(self, node: ConditionalNode, context: Dict[str, Any]) -> Continue:
        condition = node.condition
        if self.strict_operators and not is_known_operator(condition.operator):
            raise NodeEvaluationError(node.id, f"Unknown operator: {condition.operator}")

        result = evaluate_condition(condition.model_dump(), context, node_id=node.id)

        logger.info("CONDITIONAL node evaluated",
                    node_id=node.id,
                    field=condition.field,
                    operator=condition.operator,
                    value=condition.value,
                    result=result)

        return Continue(node.on_true_next_node_id if result else node.on_false_next_node_id)
