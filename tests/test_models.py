"""
Unit tests for wire models.
"""

import orjson

from cozeapi.http.client import dump_body
from cozeapi.models.chat import CreateChatData, CreateChatReq, SubmitToolOutputsReq, ToolOutput
from cozeapi.models.common import ChatStatus, ChatV3Message, EnterMessage, MessageType
from cozeapi.models.response import ApiResponse


def test_create_chat_req_body_excludes_conversation_id():
    req = CreateChatReq(
        bot_id="B",
        user_id="U",
        conversation_id="CV1",
        additional_messages=[EnterMessage.user("hi")],
        custom_variables={"name": "Ada"},
    )

    body = orjson.loads(dump_body(req))

    assert "conversation_id" not in body
    assert body["custom_variables"] == {"name": "Ada"}
    assert CreateChatReq.model_validate({**body, "conversation_id": "CV1"}) == req


def test_submit_tool_outputs_body_excludes_ids():
    req = SubmitToolOutputsReq(
        conversation_id="CV1",
        chat_id="C1",
        tool_outputs=[ToolOutput(tool_call_id="T1", output="ok")],
    )
    assert orjson.loads(dump_body(req)) == {
        "tool_outputs": [{"tool_call_id": "T1", "output": "ok"}],
        "stream": False,
    }


def test_chat_data_with_required_action():
    data = CreateChatData.model_validate({
        "id": "C1",
        "conversation_id": "CV1",
        "status": "requires_action",
        "required_action": {
            "type": "submit_tool_outputs",
            "submit_tool_outputs": {
                "tool_calls": [{
                    "id": "T1",
                    "type": "function",
                    "function": {"name": "weather", "arguments": '{"city": "Paris"}'},
                }],
            },
        },
        "some_future_field": True,
    })

    assert data.status is ChatStatus.REQUIRES_ACTION
    assert data.is_terminal
    call = data.required_action.submit_tool_outputs.tool_calls[0]
    assert call.function.name == "weather"


def test_message_defaults():
    message = ChatV3Message.model_validate({
        "id": "M1", "conversation_id": "CV1", "role": "assistant", "type": "follow_up",
    })
    assert message.content == ""
    assert message.type is MessageType.FOLLOW_UP


def test_api_response_envelope():
    envelope = ApiResponse[CreateChatData].model_validate({
        "code": 0,
        "msg": "",
        "data": {"id": "C1", "conversation_id": "CV1", "status": "created"},
    })
    assert envelope.is_success
    assert envelope.data.id == "C1"

    failed = ApiResponse[CreateChatData].model_validate({"code": 4000, "msg": "bad"})
    assert not failed.is_success
    assert failed.data is None
