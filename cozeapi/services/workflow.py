"""
Workflow service: run, stream, resume and workflow-chat.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterator, Optional

from cozeapi.http.base import APIBase, require, require_not_blank
from cozeapi.http.client import RequestOptions
from cozeapi.models.events import (
    ChatErrorEvent,
    ChatFlowData,
    ChatFlowEvent,
    WorkflowCommonErrorEvent,
    WorkflowErrorEvent,
    WorkflowStreamData,
    classify,
    decode_chat_flow_frame,
    decode_workflow_frame,
    is_terminal,
)
from cozeapi.models.workflow import (
    ChatWorkflowReq,
    ResumeWorkflowReq,
    RunWorkflowData,
    RunWorkflowReq,
)
from cozeapi.utils.exceptions import WorkflowError
from cozeapi.utils.sse import SSEFrame

logger = logging.getLogger(__name__)

RUN_PATH = "/v1/workflow/run"
STREAM_RUN_PATH = "/v1/workflow/stream_run"
STREAM_RESUME_PATH = "/v1/workflow/stream_resume"
CHAT_PATH = "/v1/workflows/chat"


def _raise_for_workflow_error(item: WorkflowStreamData) -> None:
    if isinstance(item, WorkflowErrorEvent):
        raise WorkflowError(f"Workflow error: {item.data.error_message}", item.data.error_code)
    if isinstance(item, WorkflowCommonErrorEvent):
        raise WorkflowError(f"Workflow error: {item.data.msg}", item.data.code)


class WorkflowService(APIBase):
    """Workflow operations."""

    async def run(
        self, req: RunWorkflowReq, options: Optional[RequestOptions] = None
    ) -> RunWorkflowData:
        """Run a workflow to completion without streaming."""
        require_not_blank(req.workflow_id, "workflow_id")
        payload = req.model_copy(update={"stream": False})
        return await self._post_raw(RUN_PATH, RunWorkflowData, payload, options)

    async def stream(
        self, req: RunWorkflowReq, options: Optional[RequestOptions] = None
    ) -> AsyncIterator[WorkflowStreamData]:
        """Run a workflow and yield its events until `Done`."""
        require_not_blank(req.workflow_id, "workflow_id")
        payload = req.model_copy(update={"stream": True})
        async for item in self._workflow_events(self._sse(STREAM_RUN_PATH, payload, options)):
            yield item

    async def resume(
        self, req: ResumeWorkflowReq, options: Optional[RequestOptions] = None
    ) -> AsyncIterator[WorkflowStreamData]:
        """Resume a workflow paused on an `Interrupt` event."""
        require_not_blank(req.workflow_id, "workflow_id")
        require_not_blank(req.event_id, "event_id")
        async for item in self._workflow_events(self._sse(STREAM_RESUME_PATH, req, options)):
            yield item

    async def chat(
        self, req: ChatWorkflowReq, options: Optional[RequestOptions] = None
    ) -> AsyncIterator[ChatFlowData]:
        """Chat through a workflow; the stream mixes workflow and chat events."""
        require_not_blank(req.workflow_id, "workflow_id")
        require(bool(req.additional_messages), "additional_messages cannot be empty")

        frames = self._sse(CHAT_PATH, req, options)
        async with aclosing(frames):
            async for frame in frames:
                if classify(frame) is None:
                    logger.warning(f"Dropping frame with unknown event type: {frame.event}")
                    continue
                item = decode_chat_flow_frame(frame)
                if isinstance(item, ChatFlowEvent):
                    if isinstance(item.data, ChatErrorEvent):
                        raise WorkflowError(f"Workflow chat error: {item.data.data.msg}", item.data.data.code)
                else:
                    _raise_for_workflow_error(item.data)
                yield item
                if is_terminal(item):
                    return

    @staticmethod
    async def _workflow_events(frames: AsyncIterator[SSEFrame]) -> AsyncIterator[WorkflowStreamData]:
        async with aclosing(frames):
            async for frame in frames:
                if classify(frame) is None:
                    logger.warning(f"Dropping frame with unknown event type: {frame.event}")
                    continue
                item = decode_workflow_frame(frame)
                _raise_for_workflow_error(item)
                yield item
                if is_terminal(item):
                    return
