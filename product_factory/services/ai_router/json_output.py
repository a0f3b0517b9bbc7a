"""Extraction of a JSON object from free-form model output."""

from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from product_factory.core.exceptions import StructuredOutputError

OutputT = TypeVar("OutputT", bound=BaseModel)

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*\n(.*?)\n?```", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1)
    return text


def find_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        # Unbalanced from this brace; try the next opening brace.
        start = text.find("{", start + 1)
    return None


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the JSON object embedded in model output.

    Raises:
        StructuredOutputError: No object could be located or decoded.
    """
    body = strip_code_fence(text or "").strip()
    candidate = find_json_object(body) or body
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise StructuredOutputError(f"Invalid JSON in model output: {exc.msg}", text or "") from exc
    if not isinstance(payload, dict):
        raise StructuredOutputError("Model output JSON is not an object", text or "")
    return payload


def parse_structured(text: str, output_type: type[OutputT]) -> OutputT:
    """Extract and validate model output against a pydantic type."""
    payload = extract_json_object(text)
    try:
        return output_type.model_validate(payload)
    except ValidationError as exc:
        raise StructuredOutputError(
            f"Model output does not match {output_type.__name__}: {exc.error_count()} errors",
            text,
        ) from exc
