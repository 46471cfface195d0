"""Parser for the relevance filter's LLM answer.

Accepted shapes, after an optional surrounding markdown code fence is removed:

    [ {index, relevance_score, reason}, ... ]
    {"evaluations": [ ... ]}
    {"podcasts": [ ... ]}

Anything else raises RelevanceParseError. Individual entries that do not
validate (missing index, score outside 0-10, no reason) are dropped, not fatal.
"""
import json
import logging
import re
from typing import Any, List

from pydantic import ValidationError

from ..api.exceptions import RelevanceParseError
from ..models.llm_outputs import RelevanceEvaluation

logger = logging.getLogger(__name__)

ENVELOPE_KEYS = ("evaluations", "podcasts")

_OPENING_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_CLOSING_FENCE_RE = re.compile(r"\n?```\s*$")


def strip_code_fence(raw_text: str) -> str:
    """Removes a leading ```/```json fence and its closing ``` if the text starts with one."""
    content = raw_text.strip()
    if content.startswith("```"):
        content = _OPENING_FENCE_RE.sub("", content, count=1)
        content = _CLOSING_FENCE_RE.sub("", content, count=1)
    return content.strip()


def _extract_entries(parsed: Any) -> List[Any]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in ENVELOPE_KEYS:
            if key in parsed:
                entries = parsed[key]
                if isinstance(entries, list):
                    return entries
                raise RelevanceParseError(f"'{key}' is not a list")
        raise RelevanceParseError(f"JSON object has none of the keys {', '.join(ENVELOPE_KEYS)}")
    raise RelevanceParseError(f"Expected a JSON array or object, got {type(parsed).__name__}")


def parse_relevance_response(raw_text: str) -> List[RelevanceEvaluation]:
    """Parses the LLM answer into evaluations, in the order the model gave them.

    Raises:
        RelevanceParseError: empty text, invalid JSON, or an unsupported top-level shape.
    """
    if not raw_text or not raw_text.strip():
        raise RelevanceParseError("Empty relevance response", raw_text=raw_text)

    content = strip_code_fence(raw_text)
    try:
        parsed = json.loads(content)
    except ValueError as e:
        raise RelevanceParseError(f"Relevance response is not valid JSON: {e}", raw_text=raw_text) from e

    try:
        entries = _extract_entries(parsed)
    except RelevanceParseError as e:
        e.raw_text = raw_text
        raise

    evaluations: List[RelevanceEvaluation] = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.debug(f"Skipping non-object relevance entry: {entry!r}")
            continue
        try:
            evaluations.append(RelevanceEvaluation.model_validate(entry))
        except ValidationError as e:
            logger.debug(f"Skipping invalid relevance entry {entry!r}: {e.errors()[0]['msg']}")
    return evaluations
