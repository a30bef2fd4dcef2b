"""Pydantic models for journey definitions, patient context and API payloads."""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel

from journey_scheduler.constants import NODE_TYPE_CONDITIONAL, NODE_TYPE_DELAY, NODE_TYPE_MESSAGE


# =============================================================================
# Journey nodes
# =============================================================================

class MessageNode(BaseModel):
    """An action to be performed, like sending an SMS or making a call."""

    id: str = Field(min_length=1)
    type: Literal[NODE_TYPE_MESSAGE]
    message: str
    next_node_id: Optional[str] = None


class DelayNode(BaseModel):
    """A simple time delay in the journey."""

    id: str = Field(min_length=1)
    type: Literal[NODE_TYPE_DELAY]
    duration_seconds: float = Field(ge=0)
    next_node_id: Optional[str] = None


class Condition(BaseModel):
    """Predicate evaluated against the patient context.

    ``field`` is a dot-separated path (e.g. ``demographics.age``); ``operator``
    is kept as a free string so unknown operators reach the interpreter.
    """

    field: str
    operator: str
    value: Any = None


class ConditionalNode(BaseModel):
    """A conditional branch based on patient data."""

    id: str = Field(min_length=1)
    type: Literal[NODE_TYPE_CONDITIONAL]
    condition: Condition
    on_true_next_node_id: Optional[str] = None
    on_false_next_node_id: Optional[str] = None


JourneyNode = Annotated[
    Union[MessageNode, DelayNode, ConditionalNode],
    Field(discriminator="type"),
]

journey_node_adapter: TypeAdapter[JourneyNode] = TypeAdapter(JourneyNode)


class JourneyDefinition(BaseModel):
    """Journey template as accepted by the API (id is assigned on creation)."""

    name: str = Field(min_length=1, max_length=255)
    start_node_id: Optional[str] = None
    nodes: List[JourneyNode] = Field(default_factory=list)

    @field_validator("nodes")
    @classmethod
    def validate_unique_node_ids(cls, nodes):
        """Node ids must be unique within a journey."""
        seen = set()
        for node in nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id: {node.id}")
            seen.add(node.id)
        return nodes


# =============================================================================
# Patient context
# =============================================================================

class PatientContext(BaseModel):
    """Patient data to evaluate conditionals against.

    Extra attributes are preserved; the engine only reads them through
    dotted-path lookups.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    age: Optional[float] = None
    language: Optional[Literal["en", "es"]] = None
    condition: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def coerce_id(cls, data):
        if isinstance(data, dict) and isinstance(data.get("id"), int):
            data = {**data, "id": str(data["id"])}
        return data

    def to_context(self) -> Dict[str, Any]:
        """Plain mapping persisted with the run (unset optionals dropped)."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# API responses
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JourneyCreated(_CamelModel):
    journey_id: str


class RunTriggered(_CamelModel):
    run_id: str


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class JourneyRunView(_CamelModel):
    """Public status view of a journey run."""

    run_id: str
    journey_id: str
    status: str
    current_node_id: Optional[str] = None
    patient_context: Dict[str, Any] = Field(default_factory=dict)
    resume_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("resume_at", "created_at", "updated_at")
    @classmethod
    def normalize_times(cls, v):
        return _as_utc(v)

    @classmethod
    def from_run(cls, run) -> "JourneyRunView":
        return cls(
            run_id=run.run_id,
            journey_id=run.journey_id,
            status=run.status,
            current_node_id=run.current_node_id,
            patient_context=run.patient_context or {},
            resume_at=run.resume_at,
            created_at=run.created_at,
            updated_at=run.updated_at,
        )
