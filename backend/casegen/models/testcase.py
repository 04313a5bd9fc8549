"""
Test case models.

The validated shape of a generated test case. Field aliases follow the camelCase
keys the model is asked to produce.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class TestStep(BaseModel):
    """One action / expected-result pair."""

    __test__ = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    action: str
    expected_result: str = Field(..., alias="expectedResult")

    @field_validator("action", "expected_result")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        return _require_text(value)


class TestCase(BaseModel):
    """A structured test case with at least one step."""

    __test__ = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str
    preconditions: str = ""
    steps: List[TestStep] = Field(..., min_length=1)
    priority: Priority = Priority.MEDIUM
    requirement_ids: List[str] = Field(default_factory=list, alias="requirementIds")

    @field_validator("id", "title")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        return _require_text(value)

    @field_validator("preconditions", mode="before")
    @classmethod
    def _default_preconditions(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value: Any) -> Any:
        return Priority.MEDIUM if value is None else value

    @field_validator("requirement_ids", mode="before")
    @classmethod
    def _default_requirement_ids(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


__all__ = ["Priority", "TestStep", "TestCase"]
