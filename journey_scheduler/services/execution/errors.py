"""Journey engine exception hierarchy."""

from typing import Optional


class JourneyError(Exception):
    """Base exception for all journey engine errors."""


class JourneyNotFoundError(JourneyError):
    """Journey definition does not exist."""

    def __init__(self, journey_id: str):
        self.journey_id = journey_id
        super().__init__(f"Journey with ID {journey_id} not found")


class RunNotFoundError(JourneyError):
    """Journey run does not exist."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Journey run with ID {run_id} not found")


class NodeEvaluationError(JourneyError):
    """A node could not be interpreted (unknown type, malformed, bad operator)."""

    def __init__(self, node_id: Optional[str], message: str):
        self.node_id = node_id
        super().__init__(f"[{node_id}] {message}")


class DeliveryError(JourneyError):
    """Message delivery to the patient failed."""
