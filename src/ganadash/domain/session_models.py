from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


ChatEntryType = Literal["user", "ai"]


class Participant(BaseModel):
    id: str
    name: str = ""
    email: str = ""
    joined_at: datetime


class SessionFile(BaseModel):
    name: str
    content: str = ""
    language: Optional[str] = None


class ChatEntry(BaseModel):
    user_id: str
    user_name: str = ""
    message: str
    type: ChatEntryType = "user"
    timestamp: datetime


class CollaborationSession(BaseModel):
    id: str
    name: str
    created_by: str
    participants: List[Participant] = Field(default_factory=list)
    code: str = ""
    language: str = "javascript"
    files: List[SessionFile] = Field(default_factory=list)
    chat_history: List[ChatEntry] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class SessionCreate(BaseModel):
    name: str = Field(min_length=1)
    language: str = "javascript"


class ChatMessageIn(BaseModel):
    message: str = Field(min_length=1)
    user_name: Optional[str] = None
    type: ChatEntryType = "user"


class SessionUpdate(BaseModel):
    code: Optional[str] = None
    language: Optional[str] = None
    chat_message: Optional[ChatMessageIn] = None


class AIAssistRequest(BaseModel):
    prompt: str = ""
    selected_code: str = ""
    action: Optional[str] = None


class AIAssistResponse(BaseModel):
    response: str
    provider: Optional[str] = None
    model: Optional[str] = None
