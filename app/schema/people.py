from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PlanTier(str, Enum):
    NONE = "None"
    BASIC = "Artist"
    PRO = "ArtistPro"

    @classmethod
    def from_badge_title(cls, title: Optional[str]) -> "PlanTier":
        """Map the creator badge title shown on a profile page to a tier."""
        if title == "Artist":
            return cls.BASIC
        if title == "Artist Pro":
            return cls.PRO
        return cls.NONE

    @classmethod
    def from_stored(cls, value: Optional[str]) -> "PlanTier":
        try:
            return cls(value)
        except ValueError:
            return cls.NONE


class ProfileAttributes(BaseModel):
    model_config = ConfigDict(frozen=True)

    display_name: str
    image_url: str = ""
    verified: bool = False
    plan_tier: PlanTier = PlanTier.NONE
    content_count: int = Field(0, ge=0)


class Person(BaseModel):
    id: int
    handle: str
    display_name: str
    image_url: str = ""
    verified: bool = False
    plan_tier: PlanTier = PlanTier.NONE
    content_count: int = 0

    @classmethod
    def from_profile(cls, person_id: int, handle: str, attrs: ProfileAttributes) -> "Person":
        return cls(id=person_id, handle=handle, **attrs.model_dump())


class Follow(BaseModel):
    model_config = ConfigDict(frozen=True)

    follower_id: int
    followee_handle: str
