from __future__ import annotations

from datetime import date as date_type, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


EntryType = Literal["note", "image", "video"]
ReactionType = Literal["fire", "love", "clap", "mind_blown"]


class Challenge(BaseModel):
    id: str
    text: str
    completed: bool = False
    completed_at: Optional[datetime] = None


class LogEntry(BaseModel):
    id: str
    type: EntryType
    content: str
    media_url: Optional[str] = None
    timestamp: datetime


class Reaction(BaseModel):
    user_id: str
    type: ReactionType
    timestamp: datetime


class Comment(BaseModel):
    id: str
    user_id: str
    username: str
    content: str
    timestamp: datetime


class DailyLog(BaseModel):
    id: str
    user_id: str
    date: date_type
    challenges: List[Challenge] = Field(default_factory=list)
    entries: List[LogEntry] = Field(default_factory=list)
    summary: Optional[str] = None
    is_public: bool = True
    reactions: List[Reaction] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class DailyLogCreate(BaseModel):
    date: date_type
    challenges: List[str] = Field(default_factory=list)
    is_public: bool = True


class DailyLogPatch(BaseModel):
    action: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ToggleChallengeData(BaseModel):
    challenge_id: str


class EntryData(BaseModel):
    type: EntryType = "note"
    content: str = Field(min_length=1)
    media_url: Optional[str] = None


class ReactionData(BaseModel):
    type: ReactionType


class CommentData(BaseModel):
    username: str = ""
    content: str = Field(min_length=1)
