"""Data models for scraped samples."""
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

NUMERIC_FIELDS = ("primary_count", "suspects", "recovered", "deaths")

# Older page generations called the primary count "confirmed"
LEGACY_PRIMARY_KEYS = ("confirmed",)


class PartialSample(BaseModel):
    """The four indicators read from one page. ``None`` means not obtained."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    primary_count: Optional[int] = Field(
        default=None, alias="active", description="Active/confirmed case count"
    )
    suspects: Optional[int] = None
    recovered: Optional[int] = None
    deaths: Optional[int] = None

    def numbers(self) -> tuple[Optional[int], ...]:
        return tuple(getattr(self, name) for name in NUMERIC_FIELDS)

    def missing_fields(self) -> list[str]:
        return [name for name in NUMERIC_FIELDS if getattr(self, name) is None]


class Sample(PartialSample):
    """A persisted observation: indicators plus persistence timestamp and country."""

    timestamp: datetime = Field(..., description="Assigned at persistence time")
    country: str

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Rows written without an offset are UTC
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    @classmethod
    def stamp(cls, partial: PartialSample, timestamp: datetime, country: str) -> "Sample":
        return cls(
            **partial.model_dump(),
            timestamp=timestamp,
            country=country,
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Sample":
        """Build a sample from a stored row, accepting legacy column names."""
        data = dict(row)
        if "active" not in data:
            for key in LEGACY_PRIMARY_KEYS:
                if key in data:
                    data["active"] = data.pop(key)
                    break
        return cls.model_validate(data)

    def to_row(self) -> dict[str, Any]:
        """Serialize for storage and for the read endpoints."""
        return self.model_dump(mode="json", by_alias=True)
