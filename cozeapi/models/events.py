"""
SSE event taxonomy and decoders.

Each raw frame is classified by its `event:` field into a closed EventType,
then decoded into a typed variant of one of three tagged unions:

    StreamChatData     chat v3 streams (/v3/chat, submit_tool_outputs)
    WorkflowStreamData workflow streams (/v1/workflow/stream_run, stream_resume)
    ChatFlowData       workflow-chat streams, which interleave both families

Every variant is a frozen dataclass whose `event` field is the discriminant.
Unclassified frames are the caller's to drop; a classified frame whose data
does not fit its shape raises DecodeError.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Type, TypeVar, Union

import orjson
from pydantic import BaseModel, ValidationError as PydanticValidationError

from cozeapi.models.chat import CreateChatData
from cozeapi.models.common import ChatV3Message, ErrorData, WireModel
from cozeapi.utils.exceptions import DecodeError
from cozeapi.utils.sse import SSE_DONE_SIGNAL, SSEFrame

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class EventType(str, Enum):
    # Chat events
    CONVERSATION_CHAT_CREATED = "conversation.chat.created"
    CONVERSATION_CHAT_IN_PROGRESS = "conversation.chat.in_progress"
    CONVERSATION_CHAT_COMPLETED = "conversation.chat.completed"
    CONVERSATION_CHAT_FAILED = "conversation.chat.failed"
    CONVERSATION_CHAT_REQUIRES_ACTION = "conversation.chat.requires_action"
    CONVERSATION_MESSAGE_DELTA = "conversation.message.delta"
    CONVERSATION_MESSAGE_COMPLETED = "conversation.message.completed"
    CONVERSATION_AUDIO_DELTA = "conversation.audio.delta"

    # Common events
    DONE = "done"
    ERROR = "error"

    # Workflow events
    MESSAGE = "Message"
    WORKFLOW_ERROR = "Error"
    WORKFLOW_DONE = "Done"
    INTERRUPT = "Interrupt"

    @classmethod
    def from_value(cls, value: Optional[str]) -> Optional["EventType"]:
        """Look up a wire value; None when unknown."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


CHAT_EVENTS = frozenset({
    EventType.CONVERSATION_CHAT_CREATED,
    EventType.CONVERSATION_CHAT_IN_PROGRESS,
    EventType.CONVERSATION_CHAT_COMPLETED,
    EventType.CONVERSATION_CHAT_FAILED,
    EventType.CONVERSATION_CHAT_REQUIRES_ACTION,
})

MESSAGE_EVENTS = frozenset({
    EventType.CONVERSATION_MESSAGE_DELTA,
    EventType.CONVERSATION_MESSAGE_COMPLETED,
    EventType.CONVERSATION_AUDIO_DELTA,
})

WORKFLOW_EVENTS = frozenset({
    EventType.MESSAGE,
    EventType.WORKFLOW_ERROR,
    EventType.WORKFLOW_DONE,
    EventType.INTERRUPT,
})

# Frames after which a stream ends
TERMINAL_EVENTS = frozenset({EventType.DONE, EventType.WORKFLOW_DONE})


def classify(frame: SSEFrame) -> Optional[EventType]:
    """Classify a raw frame. A bare `data: [DONE]` counts as `done`."""
    event_type = EventType.from_value(frame.event)
    if event_type is None and frame.is_done_signal:
        return EventType.DONE
    return event_type


# ============================================================================
# Workflow payloads
# ============================================================================


class WorkflowEventMessage(WireModel):
    content: str
    node_is_finish: bool = False
    node_seq_id: str = "0"
    node_title: str = ""
    content_type: Optional[str] = None
    cost: Optional[str] = None
    token: Optional[int] = None


class WorkflowEventError(WireModel):
    error_code: int
    error_message: str


class WorkflowEventInterruptData(WireModel):
    data: str = ""
    event_id: str
    type: int


class WorkflowEventInterrupt(WireModel):
    interrupt_data: WorkflowEventInterruptData
    node_title: str


class WorkflowEventDone(WireModel):
    debug_url: str = ""


# ============================================================================
# Chat stream variants
# ============================================================================


@dataclass(frozen=True)
class ChatEvent:
    """conversation.chat.* frames: a chat-turn snapshot"""
    event: EventType
    data: CreateChatData


@dataclass(frozen=True)
class ChatMessageEvent:
    """conversation.message.* / conversation.audio.delta frames"""
    event: EventType
    data: ChatV3Message


@dataclass(frozen=True)
class ChatDoneEvent:
    event: EventType = EventType.DONE
    data: str = SSE_DONE_SIGNAL


@dataclass(frozen=True)
class ChatErrorEvent:
    data: ErrorData
    event: EventType = EventType.ERROR


StreamChatData = Union[ChatEvent, ChatMessageEvent, ChatDoneEvent, ChatErrorEvent]


# ============================================================================
# Workflow stream variants
# ============================================================================


@dataclass(frozen=True)
class WorkflowMessageEvent:
    data: WorkflowEventMessage
    event: EventType = EventType.MESSAGE


@dataclass(frozen=True)
class WorkflowErrorEvent:
    data: WorkflowEventError
    event: EventType = EventType.WORKFLOW_ERROR


@dataclass(frozen=True)
class WorkflowInterruptEvent:
    data: WorkflowEventInterrupt
    event: EventType = EventType.INTERRUPT


@dataclass(frozen=True)
class WorkflowDoneEvent:
    data: WorkflowEventDone = field(default_factory=WorkflowEventDone)
    event: EventType = EventType.WORKFLOW_DONE


@dataclass(frozen=True)
class WorkflowCommonErrorEvent:
    data: ErrorData
    event: EventType = EventType.ERROR


WorkflowStreamData = Union[
    WorkflowMessageEvent,
    WorkflowErrorEvent,
    WorkflowInterruptEvent,
    WorkflowDoneEvent,
    WorkflowCommonErrorEvent,
]


# ============================================================================
# Workflow-chat hybrid
# ============================================================================


@dataclass(frozen=True)
class WorkflowFlowEvent:
    data: WorkflowStreamData

    @property
    def event(self) -> EventType:
        return self.data.event


@dataclass(frozen=True)
class ChatFlowEvent:
    data: StreamChatData

    @property
    def event(self) -> EventType:
        return self.data.event


ChatFlowData = Union[WorkflowFlowEvent, ChatFlowEvent]


# ============================================================================
# Decoders
# ============================================================================


def _parse(model: Type[M], frame: SSEFrame) -> M:
    raw = frame.data or ""
    try:
        return model.model_validate(orjson.loads(raw))
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON in '{frame.event}' frame: {e}", raw) from e
    except PydanticValidationError as e:
        raise DecodeError(
            f"'{frame.event}' frame does not match {model.__name__}: {e.error_count()} error(s)", raw
        ) from e


def _require_type(frame: SSEFrame) -> EventType:
    event_type = classify(frame)
    if event_type is None:
        raise DecodeError(f"Unknown event type: {frame.event}", frame.data or "")
    return event_type


def decode_chat_frame(frame: SSEFrame) -> StreamChatData:
    """Decode a chat-stream frame into a StreamChatData variant."""
    event_type = _require_type(frame)

    if event_type is EventType.ERROR:
        return ChatErrorEvent(data=_parse(ErrorData, frame))
    if event_type in MESSAGE_EVENTS:
        return ChatMessageEvent(event=event_type, data=_parse(ChatV3Message, frame))
    if event_type in CHAT_EVENTS:
        return ChatEvent(event=event_type, data=_parse(CreateChatData, frame))
    if event_type is EventType.DONE:
        return ChatDoneEvent()
    raise DecodeError(f"Unsupported event type for chat stream: {event_type.value}", frame.data or "")


def decode_workflow_frame(frame: SSEFrame) -> WorkflowStreamData:
    """Decode a workflow-stream frame into a WorkflowStreamData variant."""
    event_type = _require_type(frame)

    if event_type is EventType.MESSAGE:
        return WorkflowMessageEvent(data=_parse(WorkflowEventMessage, frame))
    if event_type is EventType.WORKFLOW_ERROR:
        return WorkflowErrorEvent(data=_parse(WorkflowEventError, frame))
    if event_type is EventType.INTERRUPT:
        return WorkflowInterruptEvent(data=_parse(WorkflowEventInterrupt, frame))
    if event_type is EventType.WORKFLOW_DONE:
        if not frame.data or frame.is_done_signal:
            return WorkflowDoneEvent()
        return WorkflowDoneEvent(data=_parse(WorkflowEventDone, frame))
    if event_type is EventType.ERROR:
        return WorkflowCommonErrorEvent(data=_parse(ErrorData, frame))
    raise DecodeError(f"Unexpected event type for workflow: {event_type.value}", frame.data or "")


def decode_chat_flow_frame(frame: SSEFrame) -> ChatFlowData:
    """
    Try the workflow shape first, fall back to the chat shape.

    Workflow-only events (`Message`, `Error`, `Interrupt`, `Done`) never fall
    back, so their shape errors reach the caller unchanged.
    """
    try:
        return WorkflowFlowEvent(decode_workflow_frame(frame))
    except DecodeError:
        if classify(frame) in WORKFLOW_EVENTS:
            raise
        logger.debug(f"Frame '{frame.event}' is not a workflow event, decoding as chat")
        return ChatFlowEvent(decode_chat_frame(frame))


def is_terminal(item: Union[StreamChatData, WorkflowStreamData, ChatFlowData]) -> bool:
    """Whether a decoded item is a completion marker."""
    return item.event in TERMINAL_EVENTS
