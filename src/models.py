"""Data models for Afkari decision records."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column, Index, String
from sqlalchemy.orm import declarative_base

# SQLAlchemy base
Base = declarative_base()

SchemaShape = Literal["v1", "v2"]


class RecordModel(BaseModel):
    """Base model using camelCase keys on the wire and snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=(),
    )


class Option(RecordModel):
    """One candidate choice within a decision."""

    title: str = ""
    rationale: str = ""
    risks: list[str] = Field(default_factory=list)
    score: int | float = 0
    score_explanation: str = ""


class Evaluation(RecordModel):
    """Derived best-option recommendation (schema v2)."""

    best_option_index: int = 0
    best_option_title: str = ""
    confidence: int | float = 0
    reason: str = ""
    summary: str = ""


class ActionStep(RecordModel):
    """Legacy to-do item attached to a v1 decision."""

    id: str
    text: str = ""
    done: bool = False
    due_date: str | None = None


class ModelInfo(RecordModel):
    """Provenance of the model output a decision was built from."""

    provider: str = "gemini"
    model: str
    prompt_version: str
    latency_ms: int | None = None


class Decision(RecordModel):
    """A persisted analysis of one user problem.

    v2 records carry ``evaluation``; legacy v1 records carry
    ``clarifying_questions`` and ``action_plan`` instead. Both shapes are kept
    as written and never migrated.
    """

    id: str = Field(min_length=1)
    created_at: str
    updated_at: str
    title: str
    problem_text: str
    goal: str = ""
    constraints: list[str] = Field(default_factory=list)
    criteria: list[str] = Field(default_factory=list)
    options: list[Option] = Field(default_factory=list)
    evaluation: Evaluation | None = None
    clarifying_questions: list[str] | None = None
    action_plan: list[ActionStep] | None = None
    model_info: ModelInfo

    @property
    def schema_shape(self) -> SchemaShape:
        """Return which record shape this decision has."""
        if self.evaluation is not None:
            return "v2"
        if self.action_plan is not None or self.clarifying_questions is not None:
            return "v1"
        return "v1" if self.model_info.prompt_version.startswith("v1") else "v2"

    def to_record(self) -> dict[str, Any]:
        """Serialize to the camelCase record layout, omitting absent optionals."""
        exclude: dict[str, Any] = {
            name: True
            for name in ("evaluation", "clarifying_questions", "action_plan")
            if getattr(self, name) is None
        }
        if self.model_info.latency_ms is None:
            exclude["model_info"] = {"latency_ms"}
        return self.model_dump(by_alias=True, mode="json", exclude=exclude)

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "Decision":
        """Load a decision from its stored record layout."""
        return cls.model_validate(data)


class DecisionRow(Base):
    """Stored decision record keyed by id."""

    __tablename__ = "decisions"

    id = Column(String(64), primary_key=True)
    created_at = Column(String(32), nullable=False)
    updated_at = Column(String(32), nullable=False, index=True)
    prompt_version = Column(String(32), nullable=False)
    payload = Column(JSON, nullable=False)

    __table_args__ = (Index("ix_decisions_created_at_id", "created_at", "id"),)
