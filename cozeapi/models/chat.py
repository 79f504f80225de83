"""
Chat v3 request and result models.

Chat lifecycle:
    created -> in_progress -> completed | failed | requires_action
    canceled is reachable from any non-terminal state via an explicit cancel.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from cozeapi.models.common import (
    ChatStatus,
    ChatV3Message,
    EnterMessage,
    ErrorData,
    Usage,
    WireModel,
)

# Statuses after which the chat no longer changes without external action
TERMINAL_STATUSES = frozenset(
    {ChatStatus.COMPLETED, ChatStatus.FAILED, ChatStatus.REQUIRES_ACTION, ChatStatus.CANCELED}
)


class CreateChatReq(WireModel):
    """Body of POST /v3/chat. `conversation_id` travels as a query parameter."""
    bot_id: str
    user_id: Optional[str] = None
    additional_messages: Optional[List[EnterMessage]] = None
    stream: bool = False
    custom_variables: Optional[Dict[str, str]] = None
    auto_save_history: Optional[bool] = None
    meta_data: Optional[Dict[str, str]] = None
    extra_params: Optional[Dict[str, Any]] = None
    conversation_id: Optional[str] = Field(default=None, exclude=True)


# Streaming uses the same body with stream=true
StreamChatReq = CreateChatReq


class FunctionCall(WireModel):
    name: str
    arguments: str = ""


class ToolCall(WireModel):
    id: str
    type: str
    function: FunctionCall


class SubmitToolOutputs(WireModel):
    tool_calls: List[ToolCall] = Field(default_factory=list)


class RequiredAction(WireModel):
    """Tool-call request attached to a chat in `requires_action`"""
    type: str
    submit_tool_outputs: SubmitToolOutputs


class CreateChatData(WireModel):
    """Snapshot of one chat turn"""
    id: str
    conversation_id: str
    bot_id: Optional[str] = None
    status: Optional[ChatStatus] = None
    created_at: Optional[int] = None
    completed_at: Optional[int] = None
    failed_at: Optional[int] = None
    meta_data: Optional[Dict[str, str]] = None
    last_error: Optional[ErrorData] = None
    required_action: Optional[RequiredAction] = None
    usage: Optional[Usage] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class CreateChatPollData(WireModel):
    """Final chat snapshot plus the messages it produced"""
    chat: CreateChatData
    messages: Optional[List[ChatV3Message]] = None

    @property
    def usage(self) -> Optional[Usage]:
        return self.chat.usage


class ToolOutput(WireModel):
    tool_call_id: str
    output: str


class SubmitToolOutputsReq(WireModel):
    """Body of POST /v3/chat/submit_tool_outputs; ids travel as query parameters."""
    conversation_id: str = Field(exclude=True)
    chat_id: str = Field(exclude=True)
    tool_outputs: List[ToolOutput] = Field(default_factory=list)
    stream: bool = False
