"""
JSON utility functions for reading model responses.

This module contains the JSON extraction and repair helpers used when
reading invoice fields out of the recognition response.
"""

import json
import re
from typing import Any


def extract_json_object(text: str) -> str:
    """
    Cut the outermost JSON object out of a response that may carry extra text.

    Args:
        text: Raw response text

    Returns:
        The substring from the first '{' to the last '}'

    Raises:
        json.JSONDecodeError: If no object delimiters are present
    """
    json_start = text.find("{")
    json_end = text.rfind("}") + 1
    if json_start == -1 or json_end == 0:
        raise json.JSONDecodeError("No JSON object found in response", text, 0)
    return text[json_start:json_end]


def try_parse_or_repair_json(json_str: str) -> dict[str, Any]:
    """
    Attempt to parse a JSON object, applying repair strategies if parsing fails.

    Invoice fields are mostly Chinese, so repairs keep non-ASCII text intact.

    Args:
        json_str: The JSON string to parse (surrounding text is tolerated)

    Returns:
        Parsed JSON data as dictionary

    Raises:
        json.JSONDecodeError: If JSON cannot be parsed even after repair attempts
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError:
        repaired_json = extract_json_object(json_str)

        # Strategy 1: Strip markdown code fences left inside the object
        repaired_json = re.sub(r"```(?:json)?", "", repaired_json)

        # Strategy 2: Fix missing commas between object members
        # Pattern: "value"\n    "key" -> "value",\n    "key"
        repaired_json = re.sub(
            r'("(?:[^"\\]|\\.)*"|\d|true|false|null)\s*\n\s*("(?:[^"\\]|\\.)*"\s*:)',
            r'\1,\n    \2',
            repaired_json
        )

        # Strategy 3: Fix missing colons after keys
        # Pattern: "key" value -> "key": value
        repaired_json = re.sub(r'"([^"]+)"\s+(["\d\[\{])', r'"\1": \2', repaired_json)

        # Strategy 4: Remove trailing commas before a closing brace
        repaired_json = re.sub(r",\s*}", "}", repaired_json)

        data = json.loads(repaired_json)  # may raise; let it propagate for caller handling

    if not isinstance(data, dict):
        raise json.JSONDecodeError("Expected a JSON object", json_str, 0)
    return data
