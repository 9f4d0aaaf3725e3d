import json

from orgchart.event_bus import (
    DebugLogListener,
    EventBus,
    EventLogWriter,
    TOOL_CALL,
    TASK_STARTED,
    load_event_log,
)


def test_emit_assigns_ids_and_normalises_content():
    bus = EventBus(run_id="r1")
    first = bus.emit(TASK_STARTED, agent="Lead", agent_id="a1", title="Starting Task - Lead", content="do it")
    second = bus.emit(TOOL_CALL, content=["one", 2])

    assert first.id == "evt_0001"
    assert second.id == "evt_0002"
    assert first.content == ("do it",)
    assert second.content == ("one", "2")
    assert second.title == TOOL_CALL
    assert len(bus) == 2


def test_get_events_filters():
    bus = EventBus()
    bus.emit(TASK_STARTED, agent_id="a")
    bus.emit(TOOL_CALL, agent_id="a")
    bus.emit(TOOL_CALL, agent_id="b")

    assert [e.agent_id for e in bus.get_events(types={TOOL_CALL})] == ["a", "b"]
    assert [e.type for e in bus.get_events(agent_id="a")] == [TASK_STARTED, TOOL_CALL]
    assert [e.id for e in bus.get_events(since_index=2)] == ["evt_0003"]


def test_failing_listener_does_not_break_emit():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("listener bug")

    bus.subscribe(broken)
    bus.subscribe(seen.append)
    bus.emit(TOOL_CALL)
    assert len(seen) == 1

    bus.unsubscribe(seen.append)
    bus.unsubscribe(seen.append)
    bus.emit(TOOL_CALL)
    assert len(seen) == 1


def test_event_log_round_trip(tmp_path):
    path = tmp_path / "logs" / "events_r1.jsonl"
    writer = EventLogWriter(path)
    bus = EventBus(run_id="r1")
    bus.subscribe(writer)
    bus.emit(TASK_STARTED, agent="Lead", data={"depth": 0})
    writer.close()

    with open(path, "a", encoding="utf-8") as f:
        f.write("not json\n\n")
    events = load_event_log(path)
    assert len(events) == 1
    assert events[0]["agent"] == "Lead"
    assert events[0]["data"] == {"depth": 0}
    assert load_event_log(tmp_path / "missing.jsonl") == []


def test_debug_log_listener(caplog):
    import logging

    logger = logging.getLogger("event_bus_test")
    listener = DebugLogListener(logger)
    bus = EventBus()
    bus.subscribe(listener)
    with caplog.at_level(logging.DEBUG, logger="event_bus_test"):
        bus.emit(TOOL_CALL, agent="Dev", level="warning", title="Read(a.py)", content="preview")
    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.getMessage() == "[Dev] Read(a.py)\n  preview"
    assert record.log_tag == TOOL_CALL


def test_to_dict_is_json_serialisable():
    bus = EventBus()
    event = bus.emit(TOOL_CALL, data={"args": {"a": 1}})
    assert json.loads(json.dumps(event.to_dict()))["data"] == {"args": {"a": 1}}
