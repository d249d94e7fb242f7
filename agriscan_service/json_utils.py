"""
JSON extraction and light repair utilities for Gemini model output.

Handles: markdown code blocks, prose around the object, trailing commas,
and literal newlines inside string values.
"""
import json
import re
import logging

logger = logging.getLogger(__name__)


def find_balanced_object(text: str) -> str:
    """Return the first balanced ``{...}`` substring of text.

    Braces inside JSON string literals are ignored so values like
    ``"reasoning": "spots {small}"`` don't end the object early.
    Raises ValueError if no complete object is present.
    """
    start = text.find('{')
    if start == -1:
        raise ValueError("No JSON object found in model output")

    depth = 0
    in_string = False
    i = start
    while i < len(text):
        c = text[i]
        if in_string:
            if c == '\\':
                i += 2
                continue
            if c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c == '{':
            depth += 1
        elif c == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
        i += 1

    raise ValueError("Unbalanced JSON object in model output")


def _fix_newlines_in_json_strings(text: str) -> str:
    """Replace literal newlines inside JSON string values with spaces.

    Walks the text character-by-character, tracking whether we're inside
    a quoted string.  Any \\n found inside a string is replaced with a space.
    """
    result = []
    in_string = False
    i = 0
    while i < len(text):
        c = text[i]
        if c == '\\' and in_string and i + 1 < len(text):
            # Escaped character inside string - keep both chars as-is
            result.append(c)
            result.append(text[i + 1])
            i += 2
            continue
        if c == '"':
            in_string = not in_string
        if c == '\n' and in_string:
            result.append(' ')
        else:
            result.append(c)
        i += 1
    return ''.join(result)


def extract_json_object(text: str) -> dict:
    """Extract the first JSON object from a model response.

    Raises ValueError when nothing parseable is found; callers decide
    whether to fall back to text heuristics.
    """
    if not text:
        raise ValueError("Empty model output")

    # Prefer a fenced block when the model wrapped its answer in markdown
    fenced = re.search(r'```(?:json)?\s*([\s\S]*?)```', text)
    if fenced and '{' in fenced.group(1):
        text = fenced.group(1)

    candidate = find_balanced_object(text)

    # Attempt 1: direct parse
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning(f"JSON parse error (attempt 1 - direct): {e}")

    # Attempt 2: newlines inside strings and trailing commas
    repaired = _fix_newlines_in_json_strings(candidate)
    repaired = re.sub(r',\s*([}\]])', r'\1', repaired)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as e:
        logger.warning(f"JSON parse error (attempt 2 - repair): {e}")
        raise ValueError(f"Failed to parse model output as JSON: {e}") from e
