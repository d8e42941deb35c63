# codefest/schemas.py
# ------------------------------------------------------------
# Pydantic v2 schemas for the API boundary
# ------------------------------------------------------------
from datetime import date
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_SCRIPT_TAG_RE = re.compile(r"<\s*/?\s*script", re.IGNORECASE)

# Signed 64-bit range of integer primary keys
MAX_ID = 2**63 - 1
MIN_ID = -(2**63)


def _sanitize_single_line_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise ValueError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if any(ch in {"\n", "\r"} for ch in cleaned):
        raise ValueError("Value must be a single line of text")
    if "<" in cleaned or ">" in cleaned:
        raise ValueError("HTML tags are not allowed in this field")
    return cleaned


def _sanitize_multiline_text(value: str | None, *, allow_empty: bool = False) -> str | None:
    if value is None:
        return value
    if not isinstance(value, str):
        raise ValueError("Expected string input")
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not allow_empty and not cleaned:
        raise ValueError("Value cannot be empty")
    if _SCRIPT_TAG_RE.search(cleaned):
        raise ValueError("Script tags are not allowed")
    return cleaned


# ============================================================
# Competitions
# ============================================================

class CompetitionDTO(BaseModel):
    """A competition as exchanged over the API. ``id`` is absent until persisted."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(default=None, ge=MIN_ID, le=MAX_ID)
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=5000)
    location: Optional[str] = Field(default=None, max_length=120)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _sanitize_single_line_text(value)

    @field_validator("location", mode="before")
    @classmethod
    def _clean_location(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _sanitize_single_line_text(value, allow_empty=True) or None

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _sanitize_multiline_text(value, allow_empty=True) or None

    @model_validator(mode="after")
    def _check_dates(self) -> "CompetitionDTO":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ReindexResult(BaseModel):
    indexed: int
