"""
Generation request models.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from casegen.models.testcase import Priority, TestCase


class RequirementSource(str, Enum):
    USER_STORY = "user_story"
    ACCEPTANCE_CRITERIA = "acceptance_criteria"
    FILE = "file"
    CONFLUENCE = "confluence"


class RequirementCategory(str, Enum):
    FUNCTIONAL = "functional"
    NON_FUNCTIONAL = "non-functional"
    API = "api"
    FLOW = "flow"
    EDGE_CASE = "edge_case"


class Requirement(BaseModel):
    """A requirement extracted from a story, attachment or wiki page."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    source: RequirementSource
    source_id: str = Field(..., alias="sourceId")
    text: str = Field(..., min_length=1)
    category: RequirementCategory
    priority: Priority

    @property
    def source_label(self) -> str:
        labels = {
            RequirementSource.USER_STORY: "User Story",
            RequirementSource.ACCEPTANCE_CRITERIA: "Acceptance Criteria",
            RequirementSource.FILE: "File",
            RequirementSource.CONFLUENCE: "Confluence",
        }
        return labels[self.source]


class GenerateRequest(BaseModel):
    """Input for one test-case generation call."""

    model_config = ConfigDict(populate_by_name=True)

    issue_key: str = Field(..., min_length=1, alias="issueKey")
    story_title: str = Field(..., min_length=1, alias="storyTitle")
    description: str = Field(..., min_length=1)
    acceptance_criteria: str = Field(default="", alias="acceptanceCriteria")
    additional_context: str = Field(default="", alias="additionalContext")
    existing_test_cases: Optional[List[TestCase]] = Field(default=None, alias="existingTestCases")
    requirements: Optional[List[Requirement]] = None


__all__ = [
    "RequirementSource",
    "RequirementCategory",
    "Requirement",
    "GenerateRequest",
]
