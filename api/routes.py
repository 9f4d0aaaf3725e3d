"""All REST + SSE endpoints for the FastAPI backend."""

import json
import time
from typing import Optional

import config
from fastapi import APIRouter, HTTPException, Query
from sse_starlette.sse import EventSourceResponse

from orgchart.errors import UnknownRoleError
from orgchart.event_bus import DISPLAY_EVENTS
from orgchart.orchestrator import Orchestrator
from orgchart.turn_limits import get_limit

from .models import (
    ControlResponse,
    EventOut,
    EventPage,
    InputRequest,
    ServerStatus,
    TaskRequest,
    WorkerNode,
)
from .streaming import EventSSEBridge

router = APIRouter(prefix="/api")

# These are injected by app.py lifespan
orchestrator: Orchestrator = None  # type: ignore[assignment]
sse_bridge: Optional[EventSSEBridge] = None
_start_time: float = 0.0


def _get_orchestrator() -> Orchestrator:
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialised")
    return orchestrator


def _parse_types(types: Optional[str]) -> Optional[set[str]]:
    if not types:
        return None
    return {t.strip() for t in types.split(",") if t.strip()}


# ---- Status ----


@router.get("/status")
async def status():
    orch = _get_orchestrator()
    snapshot = orch.snapshot()
    current = orch.current_worker()
    return ServerStatus(
        uptime_seconds=round(time.time() - _start_time, 1),
        task_running=not orch.is_idle(),
        paused=orch.is_paused(),
        root_agent=snapshot.name if snapshot else None,
        current_agent=current.name if current is not None and not orch.is_idle() else None,
        total_cost=snapshot.total_cost if snapshot else 0.0,
        result=orch.result(),
        event_count=len(orch.events),
        api_key_configured=bool(config.get_api_key()),
    ).model_dump(mode="json")


@router.get("/tree")
async def tree():
    """Snapshot of the worker tree, or null before the first task."""
    snapshot = _get_orchestrator().snapshot()
    if snapshot is None:
        return None
    return WorkerNode.model_validate(snapshot.to_dict()).model_dump(mode="json")


# ---- Events ----


@router.get("/events")
async def events(
    since: int = Query(default=0, ge=0, description="Skip events before this index"),
    types: Optional[str] = Query(default=None, description="Comma-separated event types"),
    agent_id: Optional[str] = Query(default=None, description="Only events from this worker"),
):
    orch = _get_orchestrator()
    batch = orch.events.get_events(since_index=since)
    wanted = _parse_types(types)
    selected = [
        e for e in batch
        if (not wanted or e.type in wanted)
        and (agent_id is None or e.agent_id == agent_id)
    ]
    return EventPage(
        events=[EventOut(**e.to_dict()) for e in selected],
        next_index=since + len(batch),
    ).model_dump(mode="json")


@router.get("/events/stream")
async def events_stream():
    """SSE stream of display events. Client should reconnect on disconnect.

    Replays the most recent display events first, then streams live ones.
    """
    orch = _get_orchestrator()
    if sse_bridge is None:
        raise HTTPException(status_code=400, detail="No active event stream")

    bridge = sse_bridge
    queue = bridge.subscribe()
    replay = orch.events.get_events(types=set(DISPLAY_EVENTS))[-get_limit("api.event_replay"):]

    async def event_generator():
        try:
            for event in replay:
                yield {"event": event.type, "id": event.id, "data": json.dumps(event.to_dict())}
            seen = {e.id for e in replay}
            while True:
                payload = await queue.get()
                if payload is None:
                    break
                if payload["id"] in seen:
                    continue
                yield {"event": payload["type"], "id": payload["id"], "data": json.dumps(payload)}
        finally:
            bridge.unsubscribe(queue)

    return EventSourceResponse(event_generator())


# ---- Control ----


@router.post("/task", status_code=202)
async def start_task(req: TaskRequest):
    orch = _get_orchestrator()
    agent_id = req.agent_id or config.DEFAULT_AGENT
    try:
        worker = orch.start_task(agent_id, req.task)
    except UnknownRoleError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ControlResponse(status="started", agents=[worker.name]).model_dump(mode="json")


@router.post("/input", status_code=202)
async def send_input(req: InputRequest):
    orch = _get_orchestrator()
    try:
        worker = orch.send_input(req.message)
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ControlResponse(status="queued", agents=[worker.name]).model_dump(mode="json")


@router.post("/pause")
async def pause():
    worker = _get_orchestrator().pause()
    if worker is None:
        return ControlResponse(status="nothing_to_pause").model_dump(mode="json")
    return ControlResponse(status="paused", agents=[worker.name]).model_dump(mode="json")


@router.post("/resume")
async def resume():
    workers = _get_orchestrator().resume()
    if not workers:
        return ControlResponse(status="nothing_to_resume").model_dump(mode="json")
    return ControlResponse(status="resumed", agents=[w.name for w in workers]).model_dump(mode="json")
