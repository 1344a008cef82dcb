"""Recovery of JSON payloads from free-form model output."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional, Tuple

from longtrip.core.errors import JSONRecoveryError

logger = logging.getLogger(__name__)

_CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```\s*$")

STRUCTURED_OUTPUT_INSTRUCTIONS = (
    "\n\nOutput format rules:"
    "\n- Return valid JSON only"
    "\n- Do NOT wrap the JSON in markdown code fences (```json)"
    "\n- Do NOT add any explanation or prose before or after the JSON"
    "\n- Return pure JSON and nothing else"
)


def enhance_prompt_for_structured_output(prompt: str, schema: Optional[dict] = None) -> str:
    """Append explicit pure-JSON instructions for providers without a native JSON mode."""

    enhanced = prompt + STRUCTURED_OUTPUT_INSTRUCTIONS
    schema_type = str((schema or {}).get("type", "")).upper()
    if schema_type == "ARRAY":
        enhanced += "\n- Format: a JSON array []"
    elif schema_type == "OBJECT":
        enhanced += "\n- Format: a JSON object {}"
    if (schema or {}).get("properties") or ((schema or {}).get("items") or {}).get("properties"):
        enhanced += "\n- Include every required field"
    return enhanced + "\n\nReturn the JSON now:"


def strip_code_fences(text: str) -> str:
    """Remove leading/trailing ``` fences (with or without a ``json`` tag)."""

    stripped = text.strip()
    stripped = _LEADING_FENCE.sub("", stripped)
    stripped = _TRAILING_FENCE.sub("", stripped)
    return stripped.strip()


def find_balanced_json(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` or ``[...]`` substring, ignoring brackets in strings."""

    starts = [idx for idx in (text.find("{"), text.find("[")) if idx != -1]
    if not starts:
        return None
    start = min(starts)
    opening = text[start]
    closing = "}" if opening == "{" else "]"

    depth = 0
    in_string = False
    escape_next = False
    for idx in range(start, len(text)):
        char = text[idx]
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return text[start : idx + 1]
    return None


def repair_truncated_json(text: str) -> Optional[str]:
    """Cut a truncated JSON document back to its last complete element and close it.

    Returns ``None`` when the text is not a JSON object/array or no complete
    element was emitted before the cut.
    """

    content = text.strip()
    if not content or content[0] not in "{[":
        return None

    closers = {"{": "}", "[": "]"}
    stack: List[str] = []
    cut_points: List[Tuple[int, Tuple[str, ...]]] = []
    in_string = False
    escape_next = False
    for idx, char in enumerate(content):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in closers:
            stack.append(char)
        elif char in "}]":
            if not stack:
                return None
            stack.pop()
            if not stack:
                # The document is already complete.
                return content[: idx + 1]
            cut_points.append((idx + 1, tuple(stack)))
        elif char == "," and stack:
            cut_points.append((idx, tuple(stack)))

    if not cut_points:
        return None
    position, open_brackets = cut_points[-1]
    return content[:position] + "".join(closers[b] for b in reversed(open_brackets))


def _candidates(raw_output: str) -> List[str]:
    candidates: List[str] = []
    stripped = strip_code_fences(raw_output)
    if stripped:
        candidates.append(stripped)

    for match in _CODE_BLOCK_PATTERN.finditer(raw_output):
        block = match.group(1).strip()
        if block:
            candidates.append(block)

    balanced = find_balanced_json(stripped)
    if balanced:
        candidates.append(balanced)
    return candidates


def recover_json(raw_output: str, *, truncated: bool = False) -> Any:
    """Parse JSON out of model output, tolerating fences, prose and (optionally) truncation.

    Raises:
        JSONRecoveryError: when no candidate substring parses.
    """

    if not raw_output or not raw_output.strip():
        raise JSONRecoveryError("Empty structured output", raw_content=raw_output or "")

    last_error: Optional[json.JSONDecodeError] = None
    for candidate in dict.fromkeys(_candidates(raw_output)):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = exc
            continue

    if truncated:
        fixed = repair_truncated_json(strip_code_fences(raw_output))
        if fixed is not None:
            try:
                parsed = json.loads(fixed)
            except json.JSONDecodeError as exc:
                last_error = exc
            else:
                logger.info("Recovered truncated JSON output")
                return parsed

    logger.warning("Failed to parse model output as JSON: %s", last_error)
    suffix = " (response was truncated)" if truncated else ""
    raise JSONRecoveryError(
        f"JSON parsing failed: {last_error}{suffix}",
        raw_content=raw_output,
        truncated=truncated,
    )
