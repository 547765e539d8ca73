"""
Campaign and donation entities.

Rows coming back from the backing store are validated into these models at
the store boundary; nothing downstream handles raw dictionaries.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

from crowdchain.core.errors import InvalidRecordError


_URL_ADAPTER = TypeAdapter(HttpUrl)


def now_ms() -> int:
    return int(time.time() * 1000)


class Campaign(BaseModel):
    """A crowdfunding campaign. Only ``amount_collected`` changes after creation."""

    model_config = ConfigDict(frozen=True)

    id: str
    creator_address: str
    title: str
    description: str
    target_amount: int = Field(gt=0, description="Funding goal in wei")
    amount_collected: int = Field(default=0, ge=0, description="Confirmed donations in wei")
    deadline: int = Field(description="Deadline as epoch milliseconds")
    claimed: bool = False
    image_url: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("creator_address")
    @classmethod
    def _lower_address(cls, value: str) -> str:
        return value.lower()

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Campaign":
        """
        Build a Campaign from a ``campaigns`` row.

        Raises:
            InvalidRecordError: If a required column is missing or malformed
        """
        try:
            return cls.model_validate(row)
        except ValidationError as e:
            raise InvalidRecordError(
                f"Invalid campaign row {row.get('id')!r}: {e.error_count()} field error(s)",
                table="campaigns",
            ) from e

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump()


class Donation(BaseModel):
    """One donation event. Rows are append-only and never merged."""

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    donor_address: str
    amount: int = Field(gt=0, description="Donation in wei")
    id: Optional[str] = None

    @field_validator("campaign_id", "id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("donor_address")
    @classmethod
    def _lower_address(cls, value: str) -> str:
        return value.lower()

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Donation":
        try:
            return cls.model_validate(row)
        except ValidationError as e:
            raise InvalidRecordError(
                f"Invalid donation row {row.get('id')!r}: {e.error_count()} field error(s)",
                table="donations",
            ) from e


class CampaignFields(BaseModel):
    """User input for a new campaign."""

    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=30, max_length=5000)
    target_amount: int = Field(gt=0, description="Funding goal in wei")
    deadline: int = Field(description="Deadline as epoch milliseconds")
    image_url: Optional[str] = None

    @field_validator("title", "description")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("deadline")
    @classmethod
    def _deadline_in_future(cls, value: int) -> int:
        if value <= now_ms():
            raise ValueError("Deadline must be in the future")
        return value

    @field_validator("image_url")
    @classmethod
    def _valid_image_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        try:
            _URL_ADAPTER.validate_python(value)
        except ValidationError:
            raise ValueError("Please enter a valid URL for the campaign image") from None
        return value

    def to_row(self, creator_address: str) -> Dict[str, Any]:
        return {
            "creator_address": creator_address.lower(),
            "title": self.title,
            "description": self.description,
            "target_amount": self.target_amount,
            "amount_collected": 0,
            "deadline": self.deadline,
            "claimed": False,
            "image_url": self.image_url,
        }
