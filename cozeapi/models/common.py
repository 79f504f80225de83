"""
Shared message and chat primitives of the Coze v3 API.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


class WireModel(BaseModel):
    """Base for wire payloads; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")


class RoleType(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    OBJECT_STRING = "object_string"
    CARD = "card"


class MessageType(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"
    FUNCTION_CALL = "function_call"
    TOOL_OUTPUT = "tool_output"
    TOOL_RESPONSE = "tool_response"
    FOLLOW_UP = "follow_up"
    KNOWLEDGE = "knowledge"
    VERBOSE = "verbose"


class ChatStatus(str, Enum):
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    REQUIRES_ACTION = "requires_action"
    CANCELED = "canceled"


class ErrorData(WireModel):
    """In-band error: `last_error` of a chat, or the data of an `error` frame"""
    code: int
    msg: str = ""


class Usage(WireModel):
    token_count: int = 0
    output_count: int = 0
    input_count: int = 0


class EnterMessage(WireModel):
    """Message sent by the caller as part of a request"""
    role: RoleType
    content: Optional[str] = None
    content_type: Optional[ContentType] = ContentType.TEXT
    meta_data: Optional[Dict[str, str]] = None
    type: Optional[str] = None

    @classmethod
    def user(cls, content: str) -> "EnterMessage":
        return cls(role=RoleType.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "EnterMessage":
        return cls(role=RoleType.ASSISTANT, content=content)


class ChatV3Message(WireModel):
    """Message produced by the API (list results, stream deltas)"""
    id: str
    conversation_id: str
    bot_id: Optional[str] = None
    chat_id: Optional[str] = None
    meta_data: Optional[Dict[str, str]] = None
    role: RoleType
    content: str = ""
    content_type: ContentType = ContentType.TEXT
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    type: Optional[MessageType] = None
    status: Optional[str] = None
    usage: Optional[Usage] = None
    last_error: Optional[ErrorData] = None
