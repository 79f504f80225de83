"""
Chat v3 service: create, create-and-poll, stream, tool outputs, cancel.
"""

import asyncio
import logging
import time
import uuid
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from cozeapi.auth.token_manager import TokenManager
from cozeapi.config import settings
from cozeapi.http.base import APIBase, require, require_not_blank
from cozeapi.http.client import APIClient, RequestOptions
from cozeapi.models.chat import (
    CreateChatData,
    CreateChatPollData,
    CreateChatReq,
    StreamChatReq,
    SubmitToolOutputsReq,
)
from cozeapi.models.common import ChatV3Message, EnterMessage
from cozeapi.models.events import (
    StreamChatData,
    classify,
    decode_chat_frame,
    is_terminal,
)
from cozeapi.utils.exceptions import JSONParseError, PollTimeoutError
from cozeapi.utils.sse import SSEFrame

logger = logging.getLogger(__name__)

CHAT_PATH = "/v3/chat"
RETRIEVE_PATH = "/v3/chat/retrieve"
CANCEL_PATH = "/v3/chat/cancel"
MESSAGE_LIST_PATH = "/v3/chat/message/list"
SUBMIT_TOOL_OUTPUTS_PATH = "/v3/chat/submit_tool_outputs"


def generate_user_id() -> str:
    return uuid.uuid4().hex


class ChatService(APIBase):
    """Chat v3 operations."""

    def __init__(
        self,
        client: APIClient,
        token_manager: Optional[TokenManager] = None,
        poll_interval: Optional[float] = None,
        poll_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            client: Shared API client
            token_manager: Bearer token source; the client's own token when None
            poll_interval: Seconds between retrieve calls in create_and_poll
            poll_timeout: Seconds before create_and_poll gives up
            clock: Monotonic clock used for the poll deadline
            sleep: Awaitable sleep used between polls
        """
        super().__init__(client, token_manager)
        self.poll_interval = poll_interval if poll_interval is not None else settings.poll_interval
        self.poll_timeout = poll_timeout if poll_timeout is not None else settings.poll_timeout
        self._clock = clock
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Request preparation
    # ------------------------------------------------------------------

    def _prepare(self, req: CreateChatReq, stream: bool) -> CreateChatReq:
        """Validate a chat request and fill defaults; the caller's object is not mutated."""
        require_not_blank(req.bot_id, "bot_id")
        require(bool(req.additional_messages), "additional_messages cannot be empty")

        return req.model_copy(update={
            "user_id": req.user_id or generate_user_id(),
            "additional_messages": _normalize_messages(req.additional_messages),
            "stream": stream,
        })

    def _chat_options(self, req: CreateChatReq, options: Optional[RequestOptions]) -> RequestOptions:
        return RequestOptions().with_params(conversation_id=req.conversation_id).merge(options)

    @staticmethod
    def _validate_tool_outputs(req: SubmitToolOutputsReq) -> None:
        require_not_blank(req.conversation_id, "conversation_id")
        require_not_blank(req.chat_id, "chat_id")
        require(bool(req.tool_outputs), "tool_outputs cannot be empty")

    @staticmethod
    def _chat_ids(conversation_id: str, chat_id: str, options: Optional[RequestOptions]) -> RequestOptions:
        require_not_blank(conversation_id, "conversation_id")
        require_not_blank(chat_id, "chat_id")
        return RequestOptions().with_params(
            conversation_id=conversation_id, chat_id=chat_id
        ).merge(options)

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def create(
        self, req: CreateChatReq, options: Optional[RequestOptions] = None
    ) -> CreateChatData:
        """Create a chat turn without streaming; returns the initial snapshot."""
        payload = self._prepare(req, stream=False)
        response = await self._post(
            CHAT_PATH, CreateChatData, payload, self._chat_options(req, options)
        )
        return _require_data(response.data, "create chat")

    async def retrieve(
        self, conversation_id: str, chat_id: str, options: Optional[RequestOptions] = None
    ) -> CreateChatData:
        """Fetch the current snapshot of a chat turn."""
        opts = self._chat_ids(conversation_id, chat_id, options)
        response = await self._post(RETRIEVE_PATH, CreateChatData, None, opts)
        return _require_data(response.data, "retrieve chat")

    async def list_messages(
        self, conversation_id: str, chat_id: str, options: Optional[RequestOptions] = None
    ) -> List[ChatV3Message]:
        """List the messages produced by a chat turn."""
        opts = self._chat_ids(conversation_id, chat_id, options)
        response = await self._get(MESSAGE_LIST_PATH, List[ChatV3Message], opts)
        return response.data or []

    async def create_and_poll(
        self, req: CreateChatReq, options: Optional[RequestOptions] = None
    ) -> CreateChatPollData:
        """
        Create a chat turn, poll until it reaches a terminal status, then
        fetch its messages.

        Polling stops on `completed`, `failed` and `requires_action`, and also
        on `canceled`: a chat canceled elsewhere never changes again, so it is
        returned instead of polled until the timeout. Cancelling the calling
        task stops polling and propagates CancelledError.

        Raises:
            ValidationError: bad request, before any network call
            PollTimeoutError: no terminal status within `poll_timeout`
        """
        chat = await self.create(req, options)
        conversation_id, chat_id = chat.conversation_id, chat.id
        logger.info(f"Chat {chat_id} created with status {chat.status}, polling")

        started = self._clock()
        polls = 0
        while True:
            await self._sleep(self.poll_interval)
            chat = await self.retrieve(conversation_id, chat_id)
            polls += 1
            if chat.is_terminal:
                break
            elapsed = self._clock() - started
            if elapsed > self.poll_timeout:
                logger.error(f"Chat {chat_id} still {chat.status} after {elapsed:.1f}s ({polls} polls)")
                raise PollTimeoutError(f"polling timed out after {self.poll_timeout}s")

        logger.info(f"Chat {chat_id} finished with status {chat.status} after {polls} polls")
        messages = await self.list_messages(conversation_id, chat_id)
        return CreateChatPollData(chat=chat, messages=messages)

    async def cancel(
        self, conversation_id: str, chat_id: str, options: Optional[RequestOptions] = None
    ) -> CreateChatData:
        """Cancel an in-progress chat turn."""
        require_not_blank(conversation_id, "conversation_id")
        require_not_blank(chat_id, "chat_id")
        response = await self._post(
            CANCEL_PATH,
            CreateChatData,
            {"conversation_id": conversation_id, "chat_id": chat_id},
            options,
        )
        return _require_data(response.data, "cancel chat")

    async def submit_tool_outputs(
        self, req: SubmitToolOutputsReq, options: Optional[RequestOptions] = None
    ) -> CreateChatData:
        """Answer a `requires_action` chat with tool results."""
        self._validate_tool_outputs(req)
        opts = self._chat_ids(req.conversation_id, req.chat_id, options)
        payload = req.model_copy(update={"stream": False})
        response = await self._post(SUBMIT_TOOL_OUTPUTS_PATH, CreateChatData, payload, opts)
        return _require_data(response.data, "submit tool outputs")

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(
        self, req: StreamChatReq, options: Optional[RequestOptions] = None
    ) -> AsyncIterator[StreamChatData]:
        """Create a chat turn and yield decoded events until `done`."""
        payload = self._prepare(req, stream=True)
        frames = self._sse(CHAT_PATH, payload, self._chat_options(req, options))
        async for item in _decode_chat_stream(frames):
            yield item

    async def submit_tool_outputs_stream(
        self, req: SubmitToolOutputsReq, options: Optional[RequestOptions] = None
    ) -> AsyncIterator[StreamChatData]:
        """Submit tool results and stream the resumed chat turn."""
        self._validate_tool_outputs(req)
        opts = self._chat_ids(req.conversation_id, req.chat_id, options)
        payload = req.model_copy(update={"stream": True})
        frames = self._sse(SUBMIT_TOOL_OUTPUTS_PATH, payload, opts)
        async for item in _decode_chat_stream(frames):
            yield item


async def _decode_chat_stream(frames: AsyncIterator[SSEFrame]) -> AsyncIterator[StreamChatData]:
    async with aclosing(frames):
        async for frame in frames:
            if classify(frame) is None:
                logger.warning(f"Dropping frame with unknown event type: {frame.event}")
                continue
            item = decode_chat_frame(frame)
            yield item
            if is_terminal(item):
                return


def _normalize_messages(messages: Optional[List[EnterMessage]]) -> Optional[List[EnterMessage]]:
    if messages is None:
        return None
    return [m.model_copy(update={"content": m.content or ""}) for m in messages]


def _require_data(data: Optional[CreateChatData], operation: str) -> CreateChatData:
    if data is None:
        raise JSONParseError(f"{operation}: response envelope has no data")
    return data
