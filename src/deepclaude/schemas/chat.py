"""Schemas for the chat relay: inbound request, upstream payload, outgoing frames."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatSendRequest(BaseModel):
    """Request payload for `POST /chat/chatSend`."""

    question: str

    model_config = ConfigDict(extra="ignore")


class Message(BaseModel):
    """One conversation turn sent upstream."""

    role: Literal["user", "assistant"]
    content: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)


class StreamOptions(BaseModel):
    include_usage: bool = True


class UpstreamRequest(BaseModel):
    """Body of one streaming chat-completion call."""

    messages: list[Message]
    model: str
    stream: Literal[True] = True
    system: str = ""
    stream_options: StreamOptions = Field(default_factory=StreamOptions)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class OutgoingFrame(BaseModel):
    """One increment forwarded to the caller.

    Serialized as compact JSON with the field order below; clients rely on
    `data` holding only the increment, never the accumulated text.
    """

    id: str | None = None
    event: Literal["chat", "finish"] = "chat"
    data: str
    model: str | None = None
    index: Literal[0] = 0

    model_config = ConfigDict(frozen=True)
