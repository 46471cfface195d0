from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import Any, Optional


class CreateProspectRequest(BaseModel):
    """Payload for creating a prospect dashboard."""
    prospect_name: str = Field(..., validation_alias=AliasChoices("prospect_name", "name"))
    bio: Optional[str] = Field(None, validation_alias=AliasChoices("bio", "prospect_bio"))
    profile_picture_url: Optional[str] = None
    google_sheet_url: Optional[str] = Field(None, description="Full Google Sheet URL or a bare spreadsheet id.")

    class Config:
        populate_by_name = True

    @field_validator("prospect_name", mode="before")
    @classmethod
    def _name_required(cls, value: Any) -> str:
        if value is None or not isinstance(value, str) or not value.strip():
            raise ValueError("Prospect name is required")
        return value.strip()


class ProspectSummary(BaseModel):
    id: str
    name: str
    slug: str
    dashboard_url: str
    spreadsheet_url: Optional[str] = None


class ProspectResponse(BaseModel):
    success: bool
    prospect: Optional[ProspectSummary] = None
    error: Optional[str] = None


class EnableDashboardRequest(BaseModel):
    tagline: Optional[str] = None


class EnableDashboardResponse(BaseModel):
    success: bool
    dashboard_url: Optional[str] = None
    enabled_at: Optional[str] = None
    error: Optional[str] = None
