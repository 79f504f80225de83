from typing import Any, Dict, List, Optional

from pydantic import Field

from cozeapi.models.common import EnterMessage, WireModel


class RunWorkflowReq(WireModel):
    workflow_id: str
    bot_id: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    ext: Optional[Dict[str, str]] = None
    execute_mode: Optional[str] = None
    connector_id: Optional[str] = None
    app_id: Optional[str] = None
    stream: bool = False


class RunWorkflowData(WireModel):
    """Result of a non-streaming workflow run"""
    code: int = 0
    msg: str = ""
    data: str = ""
    cost: Optional[str] = None
    token: Optional[int] = None
    debug_url: Optional[str] = None
    execute_id: Optional[str] = None


class ResumeWorkflowReq(WireModel):
    """Answer to an `Interrupt` event"""
    workflow_id: str
    event_id: str
    resume_data: str
    interrupt_type: int


class ChatWorkflowReq(WireModel):
    workflow_id: str
    bot_id: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    additional_messages: List[EnterMessage] = Field(default_factory=list)
    ext: Optional[Dict[str, str]] = None
    app_id: Optional[str] = None
    conversation_id: Optional[str] = None
