"""Payload models for the DanceHub entities.

Constraints that must also hold for partial updates are expressed on the
field types (Annotated + Field / AfterValidator), since partial
validation checks each supplied field against its annotation alone.
"""

import re
import unicodedata
from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import (
    AfterValidator,
    AwareDatetime,
    BaseModel,
    Field,
    ValidationInfo,
    field_validator,
)

from dancehub.crud.schema import Document, EntitySchema

NAME_INVALID = (
    "Name must be between 2-60 characters and contain only letters, spaces, "
    "hyphens and apostrophes"
)

_EMAIL = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def check_person_name(value: str) -> str:
    """Letters (any script), marks, spaces, hyphens and apostrophes; 2..60 long."""
    if not 2 <= len(value) <= 60 or value != value.strip():
        raise ValueError(NAME_INVALID)
    for ch in value:
        if ch in "-' " or unicodedata.category(ch)[0] in ("L", "M"):
            continue
        raise ValueError(NAME_INVALID)
    return value


def check_email(value: str) -> str:
    if not _EMAIL.match(value):
        raise ValueError("Invalid email format")
    return value


def check_url(value: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError("Invalid URL")
    return value


def to_utc(value: datetime) -> datetime:
    """Store instants in UTC so their ISO strings sort chronologically."""
    return value.astimezone(timezone.utc)


NonEmpty = Annotated[str, Field(min_length=1)]
PersonName = Annotated[str, AfterValidator(check_person_name)]
Email = Annotated[str, AfterValidator(check_email)]
Url = Annotated[str, AfterValidator(check_url)]
UtcDateTime = Annotated[AwareDatetime, AfterValidator(to_utc)]
SkillLevel = Literal["beginner", "intermediate", "advanced"]

ROLE_CHOICES = Literal["visitor", "user", "organizer", "team", "admin"]
STATUS_CHOICES = Literal["active", "inactive", "pending"]
TAG_CATEGORIES = Literal["general", "event", "location", "skill", "style"]


# =============================================================================
# Locations
# =============================================================================


class Coordinates(BaseModel):
    lat: float
    lng: float


class Location(Document):
    name: NonEmpty
    address: NonEmpty
    city: NonEmpty
    country: NonEmpty
    coordinates: Coordinates | None = None


# =============================================================================
# Events
# =============================================================================


class SocialLinks(BaseModel):
    facebook: str | None = None
    instagram: str | None = None
    website: str | None = None


class BaseEvent(Document):
    title: NonEmpty
    description: NonEmpty
    time: UtcDateTime
    isPaid: bool
    locationId: NonEmpty
    price: Annotated[float, Field(ge=0)] | None = None
    currency: str | None = None
    maxAttendees: Annotated[int, Field(ge=1)] | None = None
    published: bool = False
    images: list[str] | None = None
    socialLinks: SocialLinks | None = None
    videoLinks: list[str] | None = None


class SocialEvent(BaseEvent):
    type: Literal["social"]
    organizerId: str | None = None
    musicStyle: str | None = None
    dressCode: str | None = None
    includesFood: bool | None = None
    includesDrinks: bool | None = None


class ScheduleItem(BaseModel):
    time: str
    title: str
    description: str
    performer: str | None = None


class ScheduleDay(BaseModel):
    day: int
    events: list[ScheduleItem]


class Accommodation(BaseModel):
    name: str
    price: float
    description: str


class FestivalEvent(BaseEvent):
    type: Literal["festival"]
    organizerId: str | None = None
    startDate: UtcDateTime
    endDate: UtcDateTime
    attendeeIds: list[str] = Field(default_factory=list)
    performers: Annotated[list[str], Field(min_length=1)]
    schedule: list[ScheduleDay] | None = None
    accommodationOptions: list[Accommodation] | None = None

    @field_validator("endDate")
    @classmethod
    def end_after_start(cls, value: datetime, info: ValidationInfo) -> datetime:
        start = info.data.get("startDate")
        if start is not None and value <= start:
            raise ValueError("End date must be after start date")
        return value


class PrivateSession(BaseEvent):
    type: Literal["private-session"]
    teacherId: str | None = None
    studentId: str | None = None
    duration: Annotated[int, Field(ge=15, le=480)]
    skillLevel: SkillLevel
    focusAreas: list[str] | None = None
    notes: str | None = None


class Workshop(BaseEvent):
    type: Literal["workshop"]
    teacherId: str | None = None
    skillLevel: SkillLevel
    maxStudents: Annotated[int, Field(ge=1)]
    enrolledStudents: list[str] = Field(default_factory=list)
    materials: list[str] | None = None
    prerequisites: list[str] | None = None


Event = Annotated[
    Union[SocialEvent, FestivalEvent, PrivateSession, Workshop],
    Field(discriminator="type"),
]


# =============================================================================
# Posts and tags
# =============================================================================


class Post(Document):
    content: NonEmpty
    title: str | None = None
    images: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    published: bool = True
    authorId: str | None = None


class Tag(Document):
    name: NonEmpty
    category: TAG_CATEGORIES = "general"
    description: str | None = None
    color: str | None = None
    isActive: bool = True


# =============================================================================
# Users
# =============================================================================


class User(Document):
    name: PersonName
    email: Email
    password: Annotated[str, Field(min_length=6)]
    role: ROLE_CHOICES | None = None
    status: STATUS_CHOICES | None = None
    bio: str | None = None
    location: str | None = None
    website: Url | None = None
    bachataLevel: str | None = None
    avatars: list[str] | None = None
    banners: list[str] | None = None
    gallery: list[str] | None = None
    avatarX: Annotated[float, Field(ge=0, le=100)] | None = None
    avatarY: Annotated[float, Field(ge=0, le=100)] | None = None


LOCATION_SCHEMA = EntitySchema.from_model(Location)
EVENT_SCHEMA = EntitySchema.from_union(
    Event, SocialEvent, FestivalEvent, PrivateSession, Workshop
)
POST_SCHEMA = EntitySchema.from_model(Post)
TAG_SCHEMA = EntitySchema.from_model(Tag)
USER_SCHEMA = EntitySchema.from_model(User)
