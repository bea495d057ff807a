"""
JSON Parser utility for parsing LLM output.

This module provides robust parsing of LLM responses that may contain
JSON data with common formatting issues like markdown code blocks,
trailing commas, etc.
"""
import json
import re
import logging
from typing import Any

from app.core.exceptions import AIServiceError

logger = logging.getLogger(__name__)


def parse_llm_json(response: str) -> Any:
    """
    Parse an LLM response as JSON.

    This function attempts multiple parsing strategies to handle common
    LLM output formatting issues:
    1. Direct JSON parse
    2. Extract JSON from markdown code blocks (```json ... ```)
    3. Extract the outermost {...} object and clean trailing commas

    Args:
        response: Raw LLM response string

    Returns:
        The decoded JSON value

    Raises:
        AIServiceError: If the response is empty or no strategy succeeds
    """
    if not response or not response.strip():
        raise AIServiceError()

    errors = []

    # Strategy 1: Direct JSON parse
    try:
        return json.loads(response)
    except json.JSONDecodeError as e:
        errors.append(f"Direct parse failed: {e}")

    # Strategy 2: Extract from ```json ... ``` (or bare ```) code block
    block_match = re.search(r'```(?:json)?\s*([\s\S]*?)\s*```', response, re.IGNORECASE)
    if block_match:
        try:
            return json.loads(block_match.group(1))
        except json.JSONDecodeError as e:
            errors.append(f"Code block parse failed: {e}")

    # Strategy 3: Find JSON object in the response
    # Look for content between first { and last }
    json_object_match = re.search(r'\{[\s\S]*\}', response)
    if json_object_match:
        cleaned = _clean_json_string(json_object_match.group(0))
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            errors.append(f"Extracted object parse failed: {e}")

    # All strategies failed
    logger.error(f"JSON parsing failed after all strategies. Errors: {errors}")
    logger.debug(f"Original response (first 500 chars): {response[:500]}")

    raise AIServiceError()


def _clean_json_string(json_str: str) -> str:
    """
    Clean common JSON formatting issues from LLM output.

    Args:
        json_str: Raw JSON string to clean

    Returns:
        Cleaned JSON string
    """
    # Remove trailing commas before ] or }
    cleaned = re.sub(r',\s*([}\]])', r'\1', json_str)
    return cleaned.strip()
