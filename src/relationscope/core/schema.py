"""Response-schema derivation and parse boundary for analyzer output.

Gemini's structured output accepts an OpenAPI-style subset of JSON Schema
(uppercase ``type`` names, no ``$ref``). ``build_response_schema`` derives
that dict from the pydantic ``ReportBody`` model so the constraint sent to
the model and the validation applied to its answer can never drift apart.

``parse_report_body`` is the only way analyzer output enters the system.
"""

from __future__ import annotations

import functools
import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from relationscope.core.errors import SchemaValidationError
from relationscope.core.models import ReportBody

logger = logging.getLogger(__name__)

# JSON Schema type -> Gemini Schema type
_TYPE_MAP: dict[str, str] = {
    "object": "OBJECT",
    "array": "ARRAY",
    "string": "STRING",
    "integer": "INTEGER",
    "number": "NUMBER",
    "boolean": "BOOLEAN",
}

# Keywords copied verbatim when present
_PASSTHROUGH_KEYS = ("description", "enum", "minimum", "maximum", "minItems", "maxItems")

# Cap on the number of field errors carried by SchemaValidationError
MAX_REPORTED_ERRORS = 10


# =============================================================================
# Schema Derivation
# =============================================================================


def _resolve_ref(ref: str, defs: dict[str, Any]) -> dict[str, Any]:
    name = ref.rsplit("/", 1)[-1]
    try:
        return defs[name]
    except KeyError:
        raise ValueError(f"Unresolvable schema reference: {ref}") from None


def _convert_node(node: dict[str, Any], defs: dict[str, Any]) -> dict[str, Any]:
    """Convert one JSON Schema node to the Gemini subset, inlining references."""
    if "$ref" in node:
        converted = _convert_node(_resolve_ref(node["$ref"], defs), defs)
        if "description" in node:
            converted["description"] = node["description"]
        return converted

    # Older pydantic releases wrap a described $ref in a single-item allOf
    if "allOf" in node and len(node["allOf"]) == 1:
        converted = _convert_node(node["allOf"][0], defs)
        if "description" in node:
            converted["description"] = node["description"]
        return converted

    json_type = node.get("type")
    if json_type is None and "enum" in node:
        json_type = "string"
    if json_type not in _TYPE_MAP:
        raise ValueError(f"Unsupported schema node: {sorted(node)}")

    converted: dict[str, Any] = {"type": _TYPE_MAP[json_type]}
    for key in _PASSTHROUGH_KEYS:
        if key in node:
            converted[key] = node[key]

    if json_type == "object":
        properties = node.get("properties", {})
        converted["properties"] = {
            name: _convert_node(child, defs) for name, child in properties.items()
        }
        converted["required"] = list(node.get("required", []))
    elif json_type == "array":
        converted["items"] = _convert_node(node.get("items", {"type": "string"}), defs)

    return converted


@functools.lru_cache(maxsize=1)
def _cached_response_schema() -> str:
    json_schema = ReportBody.model_json_schema(by_alias=True, mode="validation")
    defs = json_schema.get("$defs", {})
    return json.dumps(_convert_node(json_schema, defs))


def build_response_schema() -> dict[str, Any]:
    """Derive the Gemini response schema for a report body.

    Every object lists all of its properties as required, enums carry their
    allowed values, and integer ranges and list bounds are preserved.

    Returns:
        A fresh dict suitable for ``GenerateContentConfig.response_schema``.
    """
    return json.loads(_cached_response_schema())


# =============================================================================
# Parse Boundary
# =============================================================================


def extract_json_text(text: str) -> Any:
    """Parse JSON from model text, tolerating a fenced block or leading prose.

    Raises:
        json.JSONDecodeError: If no JSON document can be recovered.
    """
    text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        fenced = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
        if fenced:
            return json.loads(fenced.group(1))
        embedded = re.search(r"(\{[\s\S]*\})", text)
        if embedded:
            return json.loads(embedded.group(1))
        raise e


def _format_errors(error: ValidationError) -> list[str]:
    messages = []
    for detail in error.errors()[:MAX_REPORTED_ERRORS]:
        location = ".".join(str(part) for part in detail["loc"]) or "<root>"
        messages.append(f"{location}: {detail['msg']}")
    return messages


def parse_report_body(payload: str | bytes | dict[str, Any]) -> ReportBody:
    """Validate analyzer output against the report schema.

    Args:
        payload: Raw JSON text (optionally fenced) or an already-decoded dict.

    Returns:
        The validated ReportBody.

    Raises:
        SchemaValidationError: On malformed JSON, a non-object document,
            missing required fields, unknown enum values or out-of-range
            numbers. The error never embeds the payload itself.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")

    if isinstance(payload, str):
        if not payload.strip():
            raise SchemaValidationError("Analyzer returned an empty document")
        try:
            payload = extract_json_text(payload)
        except json.JSONDecodeError as e:
            raise SchemaValidationError(
                f"Analyzer output is not valid JSON: {e.msg} (line {e.lineno})",
                original_error=e,
            ) from e

    if not isinstance(payload, dict):
        raise SchemaValidationError(
            f"Analyzer output must be a JSON object, got {type(payload).__name__}"
        )

    try:
        return ReportBody.model_validate(payload)
    except ValidationError as e:
        errors = _format_errors(e)
        logger.warning(f"Report body failed validation with {e.error_count()} error(s)")
        raise SchemaValidationError(
            f"Analyzer output failed schema validation ({e.error_count()} error(s))",
            errors=errors,
            original_error=e,
        ) from e
