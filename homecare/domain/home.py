"""Home and owner domain models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """Owner of one or more homes."""

    id: str = Field(..., description="Unique user ID from database")
    name: str = Field(default="", description="Display name")
    email: str | None = Field(default=None, description="Contact email")
    last_tasks_generated_at: datetime | None = Field(
        default=None,
        description="When a maintenance plan was last generated for any of the user's homes",
    )
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class Home(BaseModel):
    """A registered home.

    Only the identity and sizing fields are declared; feature attributes such as
    ``roof_type``, ``hvac_type``, ``windows`` or ``yard_garden`` are kept as extra
    fields so that rules can address any nested attribute by dotted path.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Unique home ID from database")
    user_id: str = Field(..., description="Owning user ID")
    name: str | None = Field(default=None, description="Optional nickname for the home")
    year_built: int = Field(..., description="Construction year")
    square_footage: int = Field(..., description="Living area in square feet")
    location: str = Field(default="", description="Free-text location (city, region)")
    home_type: str | None = Field(default=None, description="single_family, apartment, townhouse, ...")

    def attributes(self) -> dict[str, Any]:
        """Return the home's attributes, declared and extra, as a plain nested dict.

        Declared optional fields that are unset (None) are left out, so rules see
        them as missing rather than as a value.
        """
        unset = {name for name in type(self).model_fields if getattr(self, name) is None}
        return self.model_dump(exclude=unset)
