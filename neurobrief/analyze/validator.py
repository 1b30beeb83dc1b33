"""
Defensive parsing of free-form AI responses into typed records.

Responses are handled as a staged pipeline: raw text, optional markdown fence
removal, generic JSON parse, array location, then per-item schema checks.
Items that fail their check are dropped and the valid remainder is returned
(salvage), so one malformed element never costs the whole batch.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from neurobrief.errors import MalformedResponseError
from neurobrief.models import NEWS_TAGS
from neurobrief.resilience import Err, Ok, Result

ValidationCode = Literal["null_response", "parse_error", "invalid_structure", "no_valid_items"]

RAW_EXCERPT_CHARS = 200

ARRAY_KEYS = ("articles", "results", "data", "items")

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?([\s\S]*?)\n?\s*```$")


@dataclass(frozen=True)
class GptValidationError:
    """Why a response could not be used."""

    code: ValidationCode
    message: str
    raw: str | None = None

    def to_exception(self) -> MalformedResponseError:
        return MalformedResponseError(self.code, self.message)


class ExtractedArticle(BaseModel):
    """Minimal article shape an extraction response must carry."""

    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore")

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1)
    relevance_score: float = Field(..., alias="relevanceScore", ge=0, le=1)
    author: str | None = None
    published_at: str | None = Field(default=None, alias="publishedAt")


def _excerpt(raw: str) -> str:
    return raw[:RAW_EXCERPT_CHARS]


def strip_markdown_fence(text: str) -> str:
    """Remove a surrounding ```/```json fence if present."""
    trimmed = text.strip()
    match = _FENCE_RE.match(trimmed)
    return match.group(1).strip() if match else trimmed


def extract_array(parsed: Any) -> list[Any] | None:
    """
    Locate the item array in a parsed response.

    Accepts a bare array, or an object holding it under a conventional key,
    else under its first array-valued property.
    """
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in ARRAY_KEYS:
            if isinstance(parsed.get(key), list):
                return parsed[key]
        for value in parsed.values():
            if isinstance(value, list):
                return value
    return None


def _parse(raw: str | None, what: str) -> Result[Any, GptValidationError]:
    if raw is None or not raw.strip():
        return Err(GptValidationError("null_response", f"AI returned null/empty {what}"))
    try:
        return Ok(json.loads(strip_markdown_fence(raw)))
    except json.JSONDecodeError:
        return Err(
            GptValidationError("parse_error", f"{what} is not valid JSON", _excerpt(raw))
        )


def validate_article_response(
    raw: str | None,
    *,
    min_valid_items: int = 1,
) -> Result[list[ExtractedArticle], GptValidationError]:
    """
    Validate an article-extraction response, salvaging the valid items.

    Fails with ``no_valid_items`` when fewer than ``min_valid_items`` items
    survive validation.
    """
    parsed_result = _parse(raw, "article response")
    if isinstance(parsed_result, Err):
        return parsed_result
    parsed = parsed_result.value

    items = extract_array(parsed)
    if items is None:
        return Err(
            GptValidationError(
                "invalid_structure",
                "article response does not contain an array",
                _excerpt(raw or ""),
            )
        )

    valid: list[ExtractedArticle] = []
    for item in items:
        try:
            valid.append(ExtractedArticle.model_validate(item))
        except ValidationError:
            continue

    if not valid or len(valid) < min_valid_items:
        return Err(
            GptValidationError(
                "no_valid_items",
                f"AI returned {len(items)} items but only {len(valid)} were valid",
                _excerpt(raw or ""),
            )
        )
    return Ok(valid)


def validate_tag_response(
    raw: str | None,
    vocabulary: tuple[str, ...] = NEWS_TAGS,
) -> Result[list[str], GptValidationError]:
    """Filter a tag-list response down to known tags, keeping first-seen order."""
    parsed_result = _parse(raw, "tag response")
    if isinstance(parsed_result, Err):
        return parsed_result
    parsed = parsed_result.value

    items = extract_array(parsed)
    if items is None:
        return Err(
            GptValidationError("invalid_structure", "tag response does not contain an array")
        )

    known = set(vocabulary)
    tags = list(dict.fromkeys(item for item in items if isinstance(item, str) and item in known))
    if not tags:
        return Err(
            GptValidationError(
                "no_valid_items", "no valid tags found in response", _excerpt(raw or "")
            )
        )
    return Ok(tags)


def validate_summary_response(raw: str | None) -> Result[str, GptValidationError]:
    """A summary is any non-empty string once trimmed."""
    if raw is None:
        return Err(GptValidationError("null_response", "AI returned null for summary"))
    trimmed = raw.strip()
    if not trimmed:
        return Err(GptValidationError("null_response", "AI returned empty summary"))
    return Ok(trimmed)
