"""
Unit tests for the workflow service against a fake Coze server.
"""

from contextlib import aclosing

import pytest

from cozeapi.models.common import EnterMessage
from cozeapi.models.events import (
    ChatFlowEvent,
    ChatMessageEvent,
    EventType,
    WorkflowDoneEvent,
    WorkflowFlowEvent,
    WorkflowInterruptEvent,
    WorkflowMessageEvent,
)
from cozeapi.models.workflow import ChatWorkflowReq, ResumeWorkflowReq, RunWorkflowReq
from cozeapi.services.workflow import WorkflowService
from cozeapi.utils.exceptions import APIError, ErrorKind, ValidationError, WorkflowError
from tests.helpers import frame, json_response, request_json, sse_response


@pytest.fixture
def workflows(api) -> WorkflowService:
    return WorkflowService(api)


async def collect(stream):
    async with aclosing(stream) as items:
        return [item async for item in items]


def message(content: str, **extra) -> dict:
    return {"content": content, "node_title": "End", "node_seq_id": "0", "node_is_finish": True, **extra}


@pytest.mark.asyncio
class TestRun:
    async def test_run(self, workflows, server):
        server.route("/v1/workflow/run", lambda r: json_response({
            "code": 0,
            "msg": "",
            "data": '{"output": "42"}',
            "debug_url": "https://debug",
            "execute_id": "X1",
        }))

        result = await workflows.run(RunWorkflowReq(workflow_id="W1", parameters={"q": "meaning"}))

        assert result.data == '{"output": "42"}'
        assert result.execute_id == "X1"
        assert request_json(server.requests[0]) == {
            "workflow_id": "W1",
            "parameters": {"q": "meaning"},
            "stream": False,
        }

    async def test_run_error_code(self, workflows, server):
        server.route("/v1/workflow/run", lambda r: json_response({"code": 4200, "msg": "workflow not found"}))

        with pytest.raises(APIError) as exc_info:
            await workflows.run(RunWorkflowReq(workflow_id="W1"))

        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    async def test_run_requires_workflow_id(self, workflows, server):
        with pytest.raises(ValidationError, match="workflow_id cannot be empty"):
            await workflows.run(RunWorkflowReq(workflow_id=""))
        assert server.requests == []


@pytest.mark.asyncio
class TestStream:
    async def test_stream_until_done(self, workflows, server):
        server.route("/v1/workflow/stream_run", lambda r: sse_response(
            frame("Message", message("Hello")),
            frame("Message", message(" world")),
            frame("Done", {"debug_url": "https://debug"}),
        ))

        items = await collect(workflows.stream(RunWorkflowReq(workflow_id="W1")))

        assert [type(i) for i in items] == [WorkflowMessageEvent, WorkflowMessageEvent, WorkflowDoneEvent]
        assert items[-1].data.debug_url == "https://debug"
        assert request_json(server.requests[0])["stream"] is True

    async def test_error_event_raises(self, workflows, server):
        server.route("/v1/workflow/stream_run", lambda r: sse_response(
            frame("Message", message("partial")),
            frame("Error", {"error_code": 720, "error_message": "node timed out"}),
            frame("Done", {}),
        ))

        seen = []
        with pytest.raises(WorkflowError) as exc_info:
            async with aclosing(workflows.stream(RunWorkflowReq(workflow_id="W1"))) as stream:
                async for item in stream:
                    seen.append(item)

        assert len(seen) == 1
        assert exc_info.value.code == 720
        assert "node timed out" in str(exc_info.value)

    async def test_interrupt_then_resume(self, workflows, server):
        server.route("/v1/workflow/stream_run", lambda r: sse_response(
            frame("Interrupt", {
                "interrupt_data": {"event_id": "E1", "type": 2, "data": "city?"},
                "node_title": "Ask",
            }),
            frame("Done", {}),
        ))
        server.route("/v1/workflow/stream_resume", lambda r: sse_response(
            frame("Message", message("Sunny in Paris")),
            frame("Done", {}),
        ))

        items = await collect(workflows.stream(RunWorkflowReq(workflow_id="W1")))
        interrupt = items[0]
        assert isinstance(interrupt, WorkflowInterruptEvent)

        resumed = await collect(workflows.resume(ResumeWorkflowReq(
            workflow_id="W1",
            event_id=interrupt.data.interrupt_data.event_id,
            resume_data="Paris",
            interrupt_type=interrupt.data.interrupt_data.type,
        )))

        assert resumed[0].data.content == "Sunny in Paris"
        assert request_json(server.requests[-1]) == {
            "workflow_id": "W1",
            "event_id": "E1",
            "resume_data": "Paris",
            "interrupt_type": 2,
        }

    async def test_resume_requires_event_id(self, workflows, server):
        req = ResumeWorkflowReq(workflow_id="W1", event_id=" ", resume_data="x", interrupt_type=2)
        with pytest.raises(ValidationError, match="event_id cannot be empty"):
            await collect(workflows.resume(req))
        assert server.requests == []


@pytest.mark.asyncio
class TestChat:
    def make_req(self, **overrides) -> ChatWorkflowReq:
        fields = {"workflow_id": "W1", "additional_messages": [EnterMessage.user("hi")]}
        fields.update(overrides)
        return ChatWorkflowReq(**fields)

    async def test_mixed_stream(self, workflows, server):
        server.route("/v1/workflows/chat", lambda r: sse_response(
            frame("conversation.message.delta", {
                "id": "M1", "conversation_id": "CV1", "role": "assistant", "content": "Hi",
            }),
            frame("Message", message("node output")),
            frame("done", "[DONE]"),
        ))

        items = await collect(workflows.chat(self.make_req()))

        assert isinstance(items[0], ChatFlowEvent)
        assert isinstance(items[0].data, ChatMessageEvent)
        assert isinstance(items[1], WorkflowFlowEvent)
        assert [i.event for i in items] == [
            EventType.CONVERSATION_MESSAGE_DELTA,
            EventType.MESSAGE,
            EventType.DONE,
        ]

    async def test_workflow_error_raises(self, workflows, server):
        server.route("/v1/workflows/chat", lambda r: sse_response(
            frame("Error", {"error_code": 5000, "error_message": "boom"}),
        ))

        with pytest.raises(WorkflowError) as exc_info:
            await collect(workflows.chat(self.make_req()))

        assert exc_info.value.code == 5000

    async def test_requires_messages(self, workflows, server):
        with pytest.raises(ValidationError):
            await collect(workflows.chat(self.make_req(additional_messages=[])))
        assert server.requests == []
