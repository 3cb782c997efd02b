"""Pydantic schemas for institution records and chat requests."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class Institution(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    region: Optional[str] = None
    website: Optional[str] = None
    contact: Optional[str] = None


class Part(BaseModel):
    text: str = ""


class Turn(BaseModel):
    role: str
    parts: List[Part]

    def first_text(self) -> str:
        return self.parts[0].text if self.parts else ""


class ChatRequest(BaseModel):
    chatHistory: List[Turn]
    systemContext: Optional[str] = ""


class ChatResponse(BaseModel):
    text: str
