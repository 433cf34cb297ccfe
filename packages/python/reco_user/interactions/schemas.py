from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from reco_core.types import InteractionRecord

_TRUE = {"1", "true", "yes", "y", "t"}
_FALSE = {"0", "false", "no", "n", "f", ""}


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class InteractionRow(BaseModel):
    """
    One parsed upload row. Field-name variants found in exported listening logs are
    resolved to a single canonical name; unknown columns are ignored.
    """

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", str_strip_whitespace=True
    )

    item_id: str | None = Field(
        default=None, validation_alias=_alias("item_id", "itemId", "song_id", "songId", "track_id")
    )
    title: str = Field(
        min_length=1,
        validation_alias=_alias("title", "Title", "song", "Song", "song_title", "track", "Track"),
    )
    creator: str = Field(
        min_length=1,
        validation_alias=_alias("creator", "Creator", "artist", "Artist"),
    )
    category: str = Field(
        default="unknown", validation_alias=_alias("category", "Category", "genre", "Genre")
    )
    mood: str | None = Field(default=None, validation_alias=_alias("mood", "Mood"))
    activity: str | None = Field(
        default=None, validation_alias=_alias("activity", "Activity")
    )
    hour: int = Field(
        ge=0,
        le=23,
        validation_alias=_alias("hour", "Hour", "hour_of_day", "hourOfDay", "time_of_day_hour"),
    )
    is_weekend: bool = Field(
        default=False, validation_alias=_alias("is_weekend", "isWeekend", "weekend", "Weekend")
    )
    rating: float | None = Field(
        default=None, ge=0, le=5, validation_alias=_alias("rating", "Rating", "user_rating")
    )
    completion: float = Field(
        default=0.0,
        validation_alias=_alias("completion", "Completion", "completion_rate", "completionRate"),
    )
    liked: bool = Field(default=False, validation_alias=_alias("liked", "Liked", "like"))
    skipped: bool = Field(default=False, validation_alias=_alias("skipped", "Skipped", "skip"))
    added_to_collection: bool = Field(
        default=False,
        validation_alias=_alias(
            "added_to_collection", "added_to_playlist", "addedToPlaylist", "Added_To_Playlist"
        ),
    )
    previously_seen: bool = Field(
        default=False,
        validation_alias=_alias("previously_seen", "previously_played", "repeat", "Repeat"),
    )
    occurred_at: datetime | None = Field(
        default=None, validation_alias=_alias("occurred_at", "timestamp", "Timestamp")
    )

    @field_validator(
        "is_weekend", "liked", "skipped", "added_to_collection", "previously_seen", mode="before"
    )
    @classmethod
    def _coerce_flag(cls, v: Any) -> Any:
        if isinstance(v, str):
            s = v.strip().lower()
            if s in _TRUE:
                return True
            if s in _FALSE:
                return False
        return v

    @field_validator("rating", "item_id", "mood", "activity", "occurred_at", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("completion")
    @classmethod
    def _clamp_completion(cls, v: float) -> float:
        return max(0.0, min(1.0, v))

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "unknown"
        return v

    @field_validator("mood", "activity")
    @classmethod
    def _lower_tag(cls, v: str | None) -> str | None:
        return v.lower() if v else v

    def to_record(self) -> InteractionRecord:
        return InteractionRecord(
            item_id=self.item_id,
            title=self.title,
            creator=self.creator,
            category=self.category,
            mood=self.mood,
            activity=self.activity,
            hour=self.hour,
            is_weekend=self.is_weekend,
            rating=self.rating,
            completion=self.completion,
            liked=self.liked,
            skipped=self.skipped,
            added_to_collection=self.added_to_collection,
            previously_seen=self.previously_seen,
            occurred_at=self.occurred_at,
        )
