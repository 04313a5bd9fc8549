"""
Business services.

Use lazy export to avoid importing the recovery pipeline at package import time.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "TestCaseGenerationService",
    "TestCaseGenerationError",
    "create_generation_service",
    "build_prompt",
    "build_retry_prompt",
]


def __getattr__(name: str) -> Any:
    service_module_map = {
        "TestCaseGenerationService": "casegen.services.generation_service",
        "TestCaseGenerationError": "casegen.services.generation_service",
        "create_generation_service": "casegen.services.generation_service",
        "build_prompt": "casegen.services.prompt_builder",
        "build_retry_prompt": "casegen.services.prompt_builder",
    }
    module_name = service_module_map.get(name)
    if not module_name:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(module_name)
    return getattr(module, name)
