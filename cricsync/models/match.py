"""Cricbuzz payload models.

Only the fields the sync jobs rely on are typed; everything else the API
returns is kept as extra fields and written through untouched.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator


class MatchInfo(BaseModel):
    """The matchInfo block of a live/recent match."""

    match_id: int = Field(..., alias="matchId")
    series_id: Optional[int] = Field(None, alias="seriesId")
    state: Optional[str] = None
    start_date: Optional[int] = Field(None, alias="startDate")
    end_date: Optional[int] = Field(None, alias="endDate")
    series_start_dt: Optional[str] = Field(None, alias="seriesStartDt")
    series_end_dt: Optional[str] = Field(None, alias="seriesEndDt")

    class Config:
        """Pydantic configuration."""

        populate_by_name = True
        extra = "allow"

    @field_validator("series_start_dt", "series_end_dt", mode="before")
    @classmethod
    def stringify_dates(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    @property
    def state_lowercase(self) -> str:
        return (self.state or "").lower()

    def to_document(self) -> dict:
        """Serialize back to API field names with the derived state_lowercase."""
        data = self.model_dump(by_alias=True, exclude_unset=True)
        if self.state is not None:
            data["state_lowercase"] = self.state_lowercase
        return data


class LiveMatch(BaseModel):
    """One entry of the live matches feed."""

    match_info: MatchInfo = Field(..., alias="matchInfo")
    match_score: Optional[dict] = Field(None, alias="matchScore")

    class Config:
        """Pydantic configuration."""

        populate_by_name = True
        extra = "allow"

    @property
    def match_id(self) -> int:
        return self.match_info.match_id


class CommentaryEntry(BaseModel):
    """One ball or event line in a commentary feed."""

    timestamp: Optional[int] = None
    comm_text: Optional[str] = Field(None, alias="commText")
    over_number: Optional[float] = Field(None, alias="overNumber")

    class Config:
        """Pydantic configuration."""

        populate_by_name = True
        extra = "allow"

    @property
    def merge_key(self) -> str:
        """Identity used when merging fresh entries into stored ones."""
        if self.timestamp is not None:
            return f"ts:{self.timestamp}"
        return f"text:{self.over_number}:{self.comm_text}"
