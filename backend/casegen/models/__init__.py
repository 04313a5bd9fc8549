"""
Data models.
"""

from casegen.models.testcase import Priority, TestCase, TestStep
from casegen.models.generation import (
    GenerateRequest,
    Requirement,
    RequirementCategory,
    RequirementSource,
)

__all__ = [
    # Test case models
    "Priority",
    "TestCase",
    "TestStep",
    # Generation request models
    "GenerateRequest",
    "Requirement",
    "RequirementCategory",
    "RequirementSource",
]
