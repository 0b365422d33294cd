"""
Response Normalizer

Turns loosely formatted model output into structured values.

Models frequently wrap JSON in prose or code fences, leave trailing commas,
use single quotes or forget to quote keys. Every structured read of model
output in the engine goes through normalize_response(), which:
1. Tries a direct json.loads()
2. Falls back to the first fenced code block
3. Then the first balanced {...} object
4. Then the first balanced [...] array (tried before 3 when the text
   opens with an array)
5. Finally the whole text after repair

Each fallback candidate is repaired with fix_common_json_issues() first.
"""

import json
import logging
import re
from typing import Any, Callable, List, Optional

from adaptive_lesson_engine.errors import ResponseParseError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?([\s\S]*?)\n?```")
_FENCE_MARKER_RE = re.compile(r"```(?:json|JSON)?\s*")
# "://" is left alone so URLs inside string values survive
_LINE_COMMENT_RE = re.compile(r"(?<!:)//.*$", re.MULTILINE)
_BLOCK_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")
_UNQUOTED_KEY_RE = re.compile(r"([,{]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_SINGLE_QUOTED_VALUE_RE = re.compile(r":\s*'([^']*?)'")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_ADJACENT_STRINGS_RE = re.compile(r'"\s*\n\s*"')
_ADJACENT_OBJECTS_RE = re.compile(r"}\s*\n\s*{")
_ADJACENT_ARRAYS_RE = re.compile(r"]\s*\n\s*\[")


def fix_common_json_issues(text: str) -> str:
    """
    Repair the formatting mistakes models commonly make in JSON output.

    Args:
        text: Candidate JSON text

    Returns:
        Repaired text (not guaranteed to be valid JSON)
    """
    if not isinstance(text, str):
        return text

    text = _FENCE_MARKER_RE.sub("", text)
    text = _LINE_COMMENT_RE.sub("", text)
    text = _BLOCK_COMMENT_RE.sub("", text)
    text = _UNQUOTED_KEY_RE.sub(r'\1"\2":', text)
    text = _SINGLE_QUOTED_VALUE_RE.sub(r': "\1"', text)
    text = _TRAILING_COMMA_RE.sub(r"\1", text)

    text = _ADJACENT_STRINGS_RE.sub('",\n"', text)
    text = _ADJACENT_OBJECTS_RE.sub("},\n{", text)
    text = _ADJACENT_ARRAYS_RE.sub("],\n[", text)
    text = _TRAILING_COMMA_RE.sub(r"\1", text)

    missing_braces = text.count("{") - text.count("}")
    missing_brackets = text.count("[") - text.count("]")
    if missing_brackets > 0:
        text += "]" * missing_brackets
    if missing_braces > 0:
        text += "}" * missing_braces

    return text.strip()


def extract_balanced(text: str, open_char: str, close_char: str) -> Optional[str]:
    """
    Return the first balanced open_char...close_char span of text, or None.

    Delimiters inside double-quoted strings are ignored.
    """
    start = text.find(open_char)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _fenced_candidate(text: str) -> Optional[str]:
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else None


def _object_candidate(text: str) -> Optional[str]:
    candidate = extract_balanced(text, "{", "}")
    if candidate is None:
        greedy = re.search(r"\{[\s\S]*\}", text)
        candidate = greedy.group(0) if greedy else None
    return candidate


def _array_candidate(text: str) -> Optional[str]:
    candidate = extract_balanced(text, "[", "]")
    if candidate is None:
        greedy = re.search(r"\[[\s\S]*\]", text)
        candidate = greedy.group(0) if greedy else None
    return candidate


def _candidate_extractors(text: str) -> List[Callable[[str], Optional[str]]]:
    # An array wrapping objects must be tried before its first element
    first_brace, first_bracket = text.find("{"), text.find("[")
    if first_bracket != -1 and (first_brace == -1 or first_bracket < first_brace):
        structured = [_array_candidate, _object_candidate]
    else:
        structured = [_object_candidate, _array_candidate]
    return [_fenced_candidate, *structured, lambda t: t.strip() or None]


def normalize_response(raw: Any) -> Any:
    """
    Parse model output into a JSON value, repairing it where needed.

    Args:
        raw: Model output; non-string input is stringified first

    Returns:
        The parsed value (dict, list, str, number, bool or None)

    Raises:
        ResponseParseError: If no repair strategy yields valid JSON
    """
    text = raw if isinstance(raw, str) else str(raw)

    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        pass

    for extract in _candidate_extractors(text):
        candidate = extract(text)
        if not candidate:
            continue
        try:
            return json.loads(fix_common_json_issues(candidate))
        except (ValueError, RecursionError):
            continue

    logger.debug(f"🔍 [Normalizer] Unparseable output: {text[:120]!r}")
    raise ResponseParseError("No valid JSON found in model response", raw_text=text)
