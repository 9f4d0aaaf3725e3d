"""Pydantic request/response schemas for the FastAPI backend."""

from typing import Any, Optional

from pydantic import BaseModel, Field


# ---- Requests ----

class TaskRequest(BaseModel):
    task: str = Field(..., min_length=1, description="Task handed to the root worker")
    agent_id: Optional[str] = Field(
        default=None, description="Role id of the root worker (defaults to config default_agent)"
    )


class InputRequest(BaseModel):
    message: str = Field(..., min_length=1, description="User message for the currently executing worker")


# ---- Responses ----

class ServerStatus(BaseModel):
    status: str = "ok"
    uptime_seconds: float = 0.0
    task_running: bool = False
    paused: bool = False
    root_agent: Optional[str] = None
    current_agent: Optional[str] = None
    total_cost: float = 0.0
    result: Optional[str] = None
    event_count: int = 0
    api_key_configured: bool = False


class WorkerNode(BaseModel):
    instance_id: str
    role_id: str
    name: str
    status: str
    cost: float = 0.0
    context_used: int = 0
    max_context: int = 0
    children: list["WorkerNode"] = Field(default_factory=list)


WorkerNode.model_rebuild()


class EventOut(BaseModel):
    id: str
    type: str
    ts: str
    agent: str
    agent_id: str = ""
    level: str = "info"
    title: str = ""
    content: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)


class EventPage(BaseModel):
    events: list[EventOut]
    next_index: int = Field(..., description="Pass as ?since= to fetch only newer events")


class ControlResponse(BaseModel):
    status: str
    agents: list[str] = Field(default_factory=list)
