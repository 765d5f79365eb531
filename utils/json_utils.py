"""
utils/json_utils.py

Purpose: Tolerant JSON extraction from LLM output

- Models sometimes wrap JSON in prose or code fences
- Takes everything between the first '{' and the last '}'
"""

import json
from typing import Any, Dict, Optional


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Extracts the outermost JSON object embedded in free text.

    Args:
        text: Raw model output

    Returns:
        Parsed dict, or None when no parseable object is present
    """
    if not text or not isinstance(text, str):
        return None

    begin = text.find("{")
    end = text.rfind("}")
    if begin == -1 or end == -1 or end < begin:
        return None

    try:
        parsed = json.loads(text[begin:end + 1])
    except json.JSONDecodeError:
        return None

    return parsed if isinstance(parsed, dict) else None
