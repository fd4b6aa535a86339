"""Request bodies for the admin API."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class EmergencyToggle(BaseModel):
    """Switch one job on or off."""

    job: str
    action: Literal["enable", "disable"]

    @property
    def enabled(self) -> bool:
        return self.action == "enable"


class LogRetentionUpdate(BaseModel):
    days: int = Field(ge=5, le=365)


class DispatchRequest(BaseModel):
    """Optional match filter for a manually dispatched job."""

    match_ids: Optional[List[str]] = Field(default=None, alias="matchIds")

    class Config:
        populate_by_name = True
