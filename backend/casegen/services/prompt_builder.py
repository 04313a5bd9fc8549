"""Prompt composition for test case generation."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from casegen.models.generation import GenerateRequest, Requirement
from casegen.models.testcase import TestCase

CONFLUENCE_MARKER = "--- Confluence Page ---"

_DATA_DICTIONARY_PATTERNS = (
    re.compile(r"\b(field|column|attribute|property)\s*(name|type|format|validation|required|optional)", re.I),
    re.compile(r"\b(data\s*type|format|pattern|constraint|rule)\s*:", re.I),
)
_DATA_DICTIONARY_PHRASES = ("data dictionary", "field definition", "validation rule")


def output_schema() -> Dict[str, Any]:
    return {
        "testCases": [
            {
                "id": "string (e.g., 'TC-1', 'TC-2', etc.)",
                "title": "string (clear, descriptive test case title)",
                "preconditions": "string (optional, can be empty string)",
                "steps": [
                    {
                        "id": "string (e.g., 'step-1', 'step-2', etc.)",
                        "action": "string (the action to perform)",
                        "expectedResult": "string (the expected outcome)",
                    }
                ],
                "priority": "low | medium | high",
                "requirementIds": "array of strings (optional, can be empty array [])",
            }
        ]
    }


def has_data_dictionary(additional_context: str) -> bool:
    if not additional_context:
        return False
    lowered = additional_context.lower()
    if any(phrase in lowered for phrase in _DATA_DICTIONARY_PHRASES):
        return True
    return any(pattern.search(additional_context) for pattern in _DATA_DICTIONARY_PATTERNS)


def has_confluence_content(additional_context: str) -> bool:
    return CONFLUENCE_MARKER in (additional_context or "")


def _requirement_lines(requirements: List[Requirement]) -> str:
    lines = []
    for idx, req in enumerate(requirements, start=1):
        lines.append(
            f"{idx}. [{req.id}] ({req.source_label} - {req.category.value} - {req.priority.value} priority)\n"
            f"   {req.text}"
        )
    return "\n\n".join(lines)


def _requirements_section(requirements: List[Requirement]) -> str:
    if not requirements:
        return ""
    count = len(requirements)
    return (
        "\n\nCRITICAL REQUIREMENTS TO COVER:\n\n"
        "The following requirements have been extracted and MUST be covered by the generated test cases. "
        f"You must generate AT LEAST {count} test cases to ensure complete test coverage.\n\n"
        f"{_requirement_lines(requirements)}\n\n"
        "MANDATORY RULES FOR TEST CASE GENERATION:\n\n"
        "1. ONE REQUIREMENT PER TEST CASE:\n"
        "   - Each test case MUST validate ONLY ONE requirement\n"
        '   - The requirementIds array MUST contain EXACTLY ONE requirement ID (e.g., ["REQ-123"])\n'
        "   - A single requirement may need MULTIPLE test cases (positive, negative, edge cases, data flow)\n"
        "   - Every requirement must have at least one test case\n\n"
        "2. TEST CASE INDEPENDENCE:\n"
        "   - Each test case MUST be executable in isolation\n"
        '   - Preconditions MUST NOT reference other test cases (e.g., "After TC-1 is executed")\n'
        "   - Preconditions describe system state, not test execution dependencies\n\n"
        "3. SINGLE SCOPE PER TEST CASE:\n"
        "   - Each test case MUST have ONE clear, focused scope\n\n"
        "4. COVERAGE REQUIREMENTS:\n"
        f"   - Generate AT LEAST {count} test cases (minimum one per requirement)\n"
        "   - High priority requirements need high priority test cases\n"
    )


def _independence_section(requirements: List[Requirement]) -> str:
    if not requirements:
        return ""
    return (
        "\n\nTEST CASE INDEPENDENCE REQUIREMENTS:\n\n"
        "Each test case you generate MUST be:\n"
        "- Self-contained: can be executed independently without relying on other test cases\n"
        "- Isolated: does not assume that another test case has already run\n"
        "- Complete: contains all necessary preconditions within itself\n"
        "- Focused: validates only ONE requirement with a single, clear scope\n\n"
        "Remember: Preconditions describe SYSTEM STATE, not TEST EXECUTION DEPENDENCIES.\n"
    )


def _guidelines_section(data_dictionary: bool) -> str:
    if data_dictionary:
        dictionary_rule = (
            "2. DATA DICTIONARY COVERAGE:\n"
            "   - A data dictionary has been detected in the provided context\n"
            "   - Create test cases for EVERY field in the dictionary: valid inputs accepted, invalid inputs "
            "rejected, required fields cannot be empty, optional fields can be left empty\n"
            "   - Each field validation should be a separate test case\n\n"
        )
    else:
        dictionary_rule = (
            "2. DATA DICTIONARY COVERAGE:\n"
            "   - If a data dictionary is provided in the context, create test cases for EVERY item in it\n"
            "   - Each field validation should be a separate test case\n\n"
        )
    return (
        "\n\nCOMPREHENSIVE TEST CASE GENERATION GUIDELINES:\n\n"
        "1. SEPARATE TEST CONDITIONS:\n"
        "   - Create separate test cases for each test condition; never combine conditions\n\n"
        f"{dictionary_rule}"
        "3. POSITIVE TEST CASES:\n"
        "   - Include at least 3-5 positive test cases covering primary user flows and all acceptance criteria\n\n"
        "4. NEGATIVE TEST CASES:\n"
        "   - Include at least 3-5 negative test cases, one per type of invalid, missing or unexpected input\n\n"
        "5. EDGE CASES:\n"
        "   - Include at least 2-3 boundary condition test cases (min/max values, empty sets, special characters)\n\n"
        "6. DATA FLOW TESTING:\n"
        "   - Include at least 3-4 test cases tracking data from input to storage and output\n\n"
        "7. INTEGRATION POINTS:\n"
        "   - Include at least 1-2 integration test cases if applicable\n"
    )


def _additional_context_section(additional_context: str) -> str:
    if not additional_context or not additional_context.strip():
        return ""
    if has_confluence_content(additional_context):
        return (
            "\n\nCRITICAL: The following section contains IMPORTANT information from a Confluence page that MUST "
            "be used to create test cases.\n\n"
            f"Additional Context from Attached Files and Confluence Pages:\n{additional_context}\n\n"
            "IMPORTANT INSTRUCTIONS FOR CONFLUENCE CONTENT:\n"
            "- Create test cases that cover the scenarios, APIs, flows and requirements described in it\n"
            '- "[Image]" or "[Attachment: filename]" refer to images or attachments in the original page\n'
        )
    return (
        f"\n\nAdditional Context from Attached Files and Confluence Pages:\n{additional_context}\n\n"
        "Use this additional context to better understand the requirements, technical specifications, or related "
        "documentation.\n"
    )


def _existing_test_cases_section(existing: List[TestCase]) -> str:
    if not existing:
        return ""
    payload = json.dumps([case.to_payload() for case in existing], indent=2, ensure_ascii=False)
    return (
        "\n\nIMPORTANT: The following test cases have already been generated. Please generate ADDITIONAL test "
        "cases that are DIFFERENT from these existing ones:\n\n"
        f"{payload}\n\n"
        "Do not duplicate or repeat the existing test cases."
    )


def build_prompt(request: GenerateRequest) -> str:
    requirements = request.requirements or []
    existing = request.existing_test_cases or []
    context = request.additional_context or ""
    data_dictionary = has_data_dictionary(context)

    criteria = f"Acceptance Criteria:\n{request.acceptance_criteria}\n" if request.acceptance_criteria else ""
    rules = [
        "- Return ONLY valid JSON, no markdown code blocks or additional text",
        "- Each test case must have at least 1 step with clear actions and expected results",
        "- Ensure all IDs are unique" + (" and different from existing test case IDs" if existing else ""),
        "- Include preconditions where applicable (system state only)",
        "- Set appropriate priority levels (low, medium, high) based on test case importance",
    ]
    if requirements:
        rules.append(f"- MANDATORY: Generate AT LEAST {len(requirements)} test cases")
        rules.append("- MANDATORY: Each test case MUST validate ONLY ONE requirement")
    if existing:
        rules.append("- Focus on generating NEW test cases that cover different scenarios than the existing ones")
    rules.append(
        "- The requirementIds field should contain exactly ONE requirement ID that the test case validates. "
        "If no requirements are provided, it can be an empty array []."
    )

    return (
        "You are a QA engineer creating structured test cases for a user story.\n\n"
        f"User Story: {request.story_title}\n\n"
        f"Description:\n{request.description}\n\n"
        f"{criteria}"
        f"{_requirements_section(requirements)}"
        f"{_independence_section(requirements)}"
        f"{_guidelines_section(data_dictionary)}"
        f"{_additional_context_section(context)}"
        f"{_existing_test_cases_section(existing)}\n\n"
        "Return your response as valid JSON matching this exact schema:\n\n"
        f"{json.dumps(output_schema(), indent=2)}\n\n"
        "Important:\n" + "\n".join(rules)
    )


def build_retry_prompt(prompt: str, instruction: str) -> str:
    return f"{prompt}\n\n{instruction}"


__all__ = [
    "CONFLUENCE_MARKER",
    "output_schema",
    "has_data_dictionary",
    "has_confluence_content",
    "build_prompt",
    "build_retry_prompt",
]
