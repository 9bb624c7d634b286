"""
Cleanup and repair of model output before it is trusted as JSON.

Model replies arrive wrapped in code fences, prefixed with prose, or with
small syntax defects (missing commas, trailing commas, unquoted keys,
single quotes, truncated closers). These helpers recover a parseable JSON
object where one can be recovered and give up cleanly otherwise.
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)

FENCE_OPEN = re.compile(r"^```[\w-]*\s*")
FENCE_CLOSE = re.compile(r"\s*```\s*$")

STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)

CLOSER_OPENER = re.compile(r"([\]}])(\s*)([\[{])")
ADJACENT_STRINGS = re.compile(r'"([ \t]*\n\s*)"')
LITERAL_THEN_STRING = re.compile(r'(\btrue|\bfalse|\bnull|-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)([ \t]*\n\s*)"')
TRAILING_COMMA = re.compile(r",(\s*[}\]])")
UNQUOTED_KEY = re.compile(r"([{,]\s*)([A-Za-z_][\w-]*)(\s*:)")
SINGLE_QUOTED = re.compile(r"(?<=[\[{:,])(\s*)'((?:[^'\\\n]|\\.)*)'(?=\s*[:,}\]])")


def sanitize(raw: Optional[str]) -> str:
    """
    Strip code fences and surrounding prose from a model reply.

    Returns:
        The text between the first ``{`` and the last ``}``, or the
        fence-stripped text when no braces are present
    """
    if not raw:
        return ""

    text = raw.strip()
    text = FENCE_OPEN.sub("", text)
    text = FENCE_CLOSE.sub("", text).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        text = text[start : end + 1]
    return text


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not valid JSON")


def loads(text: str) -> Any:
    """json.loads that rejects NaN and Infinity literals."""
    return json.loads(text, parse_constant=_reject_constant)


def _parses(text: str) -> bool:
    try:
        loads(text)
    except ValueError:
        return False
    return True


def _outside_strings(text: str, transform: Callable[[str], str]) -> str:
    """Apply a transform only to the parts of text outside double-quoted strings."""
    parts: List[str] = []
    last = 0
    for match in STRING_LITERAL.finditer(text):
        parts.append(transform(text[last : match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(transform(text[last:]))
    return "".join(parts)


def _insert_missing_commas(text: str) -> str:
    text = _outside_strings(text, lambda seg: CLOSER_OPENER.sub(r"\1,\2\3", seg))
    text = ADJACENT_STRINGS.sub(r'",\1"', text)
    return LITERAL_THEN_STRING.sub(r'\1,\2"', text)


def _strip_trailing_commas(text: str) -> str:
    return _outside_strings(text, lambda seg: TRAILING_COMMA.sub(r"\1", seg))


def _quote_keys(text: str) -> str:
    return _outside_strings(text, lambda seg: UNQUOTED_KEY.sub(r'\1"\2"\3', seg))


def _double_quote(text: str) -> str:
    # Best-effort: apostrophes inside double-quoted values can be caught too
    def replace(match: re.Match) -> str:
        inner = match.group(2).replace("\\'", "'").replace('"', '\\"')
        return f'{match.group(1)}"{inner}"'

    return SINGLE_QUOTED.sub(replace, text)


def _balance(text: str) -> str:
    """Close an unterminated string and append any missing closers."""
    stack: List[str] = []
    in_string = False
    escaped = False

    for ch in text:
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
        elif ch == "{":
            stack.append("}")
        elif ch == "[":
            stack.append("]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()

    if not stack and not in_string:
        return text

    result = text + ('"' if in_string else "")
    result = result.rstrip()
    if result.endswith(","):
        result = result[:-1]
    return result + "".join(reversed(stack))


REPAIR_STEPS: Tuple[Callable[[str], str], ...] = (
    _insert_missing_commas,
    _strip_trailing_commas,
    _quote_keys,
    _double_quote,
    _balance,
)


def _balanced_objects(text: str) -> List[str]:
    """All balanced ``{...}`` spans of text, largest first."""
    spans: List[Tuple[int, int]] = []
    starts: List[int] = []
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
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
        elif ch == "{":
            starts.append(i)
        elif ch == "}" and starts:
            spans.append((starts.pop(), i + 1))

    spans.sort(key=lambda span: span[1] - span[0], reverse=True)
    return [text[start:end] for start, end in spans]


def extract_largest_object(*texts: str) -> Optional[str]:
    """Return the largest balanced object in any of the texts that parses on its own."""
    for text in texts:
        for candidate in _balanced_objects(text):
            try:
                parsed = loads(candidate)
            except ValueError:
                continue
            if isinstance(parsed, dict):
                return candidate
    return None


def repair(candidate: str) -> Optional[str]:
    """
    Repair common JSON defects in a sanitized candidate.

    Already-valid input is returned unchanged. Otherwise every repair step
    runs in order and the result is parsed once; if it still fails, the
    largest balanced object that parses in isolation is returned.

    Args:
        candidate: Output of sanitize()

    Returns:
        Parseable JSON text, or None if nothing could be recovered
    """
    if not candidate:
        return None
    if _parses(candidate):
        return candidate

    repaired = candidate
    for step in REPAIR_STEPS:
        repaired = step(repaired)

    if _parses(repaired):
        logger.debug("Model output repaired", extra={"original_length": len(candidate)})
        return repaired

    fragment = extract_largest_object(repaired, candidate)
    if fragment is not None:
        logger.debug(
            "Recovered largest parseable object from model output",
            extra={"fragment_length": len(fragment), "original_length": len(candidate)},
        )
    return fragment


def parse_model_output(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Sanitize, repair and parse a model reply; only JSON objects are accepted."""
    candidate = sanitize(raw)
    repaired = repair(candidate)
    if repaired is None:
        return None

    try:
        parsed = loads(repaired)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None
