"""Worker state machine: one unit of work per step, errors become PAUSED or
tool results, never exceptions."""

import json

import pytest

from orgchart.context import CONTEXT_ACK, BlockType
from orgchart.errors import TransportError
from orgchart.event_bus import (
    CONTEXT_REFRESH,
    MAX_ITERATIONS,
    TASK_COMPLETE,
    TASK_ERROR,
    TASK_STARTED,
    TODO_UPDATED,
    TOOL_CALL,
    TOOL_ERROR,
)
from orgchart.llm.base import ToolCall, UsageMetadata
from orgchart.worker import COMPLETION_ACK, FURTHER_INPUT_PROMPT, WorkerStatus

from conftest import ManualExecutor, call, complete, reply, run_until_idle, step_until


def _types(events):
    return [e.type for e in events.get_events()]


def _tool_result(worker, tool_call_id):
    return worker.context.find_tool_block(tool_call_id).messages[1]["content"]


class TestHappyPath:
    def test_echo_hi(self, make_worker, adapter, events):
        bash = call("Bash", command="echo hi", requires_approval=False)
        adapter.add("Runner", reply(bash), complete("printed hi"))
        worker = make_worker("Runner", "Run echo hi")

        run_until_idle(worker)

        assert worker.status is WorkerStatus.IDLE
        assert worker.final_result == "printed hi"
        assert worker.mailbox.take_from_child() == "printed hi"
        assert _tool_result(worker, bash.id) == "hi\n"
        # The second LLM call saw the command output
        assert adapter.calls[1]["messages"][-1] == {
            "role": "tool",
            "tool_call_id": bash.id,
            "content": "hi\n",
        }
        types = _types(events)
        assert types.count(TASK_STARTED) == 1
        assert TOOL_CALL in types
        assert types[-1] != TASK_ERROR
        assert TASK_COMPLETE in types

    def test_top_level_root_completes_hi_with_cost(self, make_worker, adapter):
        usage = UsageMetadata(input_tokens=500, output_tokens=20)
        adapter.add("Boss", reply(call("AttemptCompletion", result="hi"), usage=usage))
        worker = make_worker("Boss", "Say hi")
        assert worker.role.level == 9
        assert worker.is_root

        run_until_idle(worker)

        assert worker.status is WorkerStatus.IDLE
        assert worker.final_result == "hi"
        assert worker.cost > 0

    def test_one_unit_of_work_per_step(self, make_worker, adapter):
        adapter.add("Runner", complete("ok"))
        worker = make_worker("Runner")

        worker.step()
        assert worker.status is WorkerStatus.THINKING
        assert adapter.calls == []
        worker.step()
        assert len(adapter.calls) == 1
        assert worker.status is WorkerStatus.THINKING
        worker.step()
        assert worker.status is WorkerStatus.ACTING
        worker.step()
        assert worker.status is WorkerStatus.IDLE

    def test_root_input_is_a_user_block(self, make_worker, adapter):
        adapter.add("Dev", complete())
        worker = make_worker("Dev", "Fix the bug")
        run_until_idle(worker)

        user = worker.context.get_blocks_by_type(BlockType.USER)
        assert [b.messages[0]["content"] for b in user] == ["Fix the bug"]
        assert worker.context.get_blocks()[0].type is BlockType.SYSTEM

    def test_completion_result_is_acknowledged(self, make_worker, adapter):
        done = call("AttemptCompletion", result="shipped")
        adapter.add("Dev", reply(done))
        worker = make_worker("Dev")
        run_until_idle(worker)
        assert _tool_result(worker, done.id) == COMPLETION_ACK

    def test_batch_text_goes_on_first_block_only(self, make_worker, adapter, workdir):
        (workdir / "a.txt").write_text("alpha")
        read = call("Read", file_path="a.txt", justification="look")
        ls = call("LS", path=".")
        adapter.add("Dev", reply(read, ls, text="Looking around"), complete())
        worker = make_worker("Dev")
        run_until_idle(worker)

        read_block = worker.context.find_tool_block(read.id)
        ls_block = worker.context.find_tool_block(ls.id)
        assert read_block.messages[0]["content"] == "Looking around"
        assert ls_block.messages[0]["content"] == ""
        assert read_block.messages[1]["content"] == "alpha"
        assert ls_block.messages[1]["content"] == "a.txt"

    def test_usage_accumulates_cost(self, make_worker, adapter):
        usage = UsageMetadata(input_tokens=1000, output_tokens=100)
        adapter.add(
            "Dev",
            reply(call("LS", path="."), usage=usage),
            reply(call("AttemptCompletion", result="ok"), usage=usage),
        )
        worker = make_worker("Dev")
        run_until_idle(worker)

        assert worker.cost == pytest.approx(2 * (1000 * 3.0 + 100 * 15.0) / 1_000_000)
        assert worker.context_used == 1000
        snap = worker.snapshot()
        assert snap.total_cost == pytest.approx(worker.cost)
        assert snap.max_context == 200_000

    def test_inline_todo_list(self, make_worker, adapter, events):
        todo = call(
            "UpdateTodoList",
            todo_items=[
                {"title": "Write code", "status": "in_progress"},
                {"title": "Test", "status": "pending", "best_agent_for_task": "Runner"},
            ],
        )
        adapter.add("Dev", reply(todo), complete())
        worker = make_worker("Dev", executor=ManualExecutor())

        worker.step()
        worker.step()
        worker.executor.run_pending()
        worker.step()
        worker.step()  # inline: runs inside step, nothing submitted

        assert worker.executor.pending == []
        assert _tool_result(worker, todo.id) == "TODO list successfully updated"
        assert [t.title for t in worker.todo_list] == ["Write code", "Test"]
        assert worker.todo_list[1].best_role == "Runner"
        assert TODO_UPDATED in _types(events)


class TestIterationCeiling:
    def test_last_iteration_offers_only_completion(self, make_worker, adapter, monkeypatch):
        from orgchart import turn_limits

        monkeypatch.setattr(turn_limits, "_overrides", {"worker.max_iterations": 2})
        adapter.add("Dev", reply(call("LS", path=".")), complete("made it"))
        worker = make_worker("Dev")
        run_until_idle(worker)

        assert "DelegateWork" in adapter.calls[0]["tools"]
        assert adapter.calls[1]["tools"] == ["AttemptCompletion"]
        assert worker.final_result == "made it"

    def test_last_iteration_rejects_tools_not_offered(self, make_worker, adapter, monkeypatch):
        from orgchart import turn_limits

        monkeypatch.setattr(turn_limits, "_overrides", {"worker.max_iterations": 1})
        work = call("DelegateWork", reasoning="r", task="t", agent_id="Dev")
        adapter.add("Lead", reply(work))
        worker = make_worker("Lead")
        run_until_idle(worker)

        assert adapter.calls[0]["tools"] == ["AttemptCompletion"]
        assert worker.children == []
        assert adapter.calls_for("Dev") == []
        assert _tool_result(worker, work.id) == "Failed to use tool, no tool of that type exists"
        assert worker.final_result.startswith("Task failed: Lead Agent exceeded max loops (1)")

    def test_exceeding_the_ceiling_fails_upward(self, make_worker, adapter, events, monkeypatch):
        from orgchart import turn_limits

        monkeypatch.setattr(turn_limits, "_overrides", {"worker.max_iterations": 2})
        adapter.add("Dev", reply(call("LS", path=".")), reply(call("LS", path=".")))
        worker = make_worker("Dev")
        run_until_idle(worker)

        assert len(adapter.calls) == 2
        assert worker.status is WorkerStatus.IDLE
        assert worker.final_result.startswith("Task failed: Dev Agent exceeded max loops (2)")
        assert worker.mailbox.take_from_child() == worker.final_result
        assert MAX_ITERATIONS in _types(events)

    def test_iterations_reset_per_task(self, make_worker, adapter, monkeypatch):
        from orgchart import turn_limits

        monkeypatch.setattr(turn_limits, "_overrides", {"worker.max_iterations": 2})
        adapter.add("Dev", reply(call("LS", path=".")), complete("first"))
        worker = make_worker("Dev")
        run_until_idle(worker)

        adapter.add("Dev", reply(call("LS", path=".")), complete("second"))
        worker.mailbox.post_from_parent("Again")
        run_until_idle(worker)
        assert worker.final_result == "second"


class TestPauseResume:
    def test_pause_during_tool_call(self, make_worker, adapter, workdir):
        (workdir / "a.txt").write_text("alpha")
        read = call("Read", file_path="a.txt", justification="look")
        adapter.add("Dev", reply(read), complete())
        executor = ManualExecutor()
        worker = make_worker("Dev", executor=executor)

        worker.step()
        worker.step()
        assert worker.llm_call_in_flight
        executor.run_pending()
        worker.step()
        assert worker.status is WorkerStatus.ACTING
        worker.step()
        assert worker.tool_call_in_flight
        assert worker.context.find_tool_block(read.id).is_pending

        assert worker.pause()
        assert worker.status is WorkerStatus.PAUSED
        executor.run_pending()
        worker.step()
        assert worker.status is WorkerStatus.PAUSED
        assert worker.context.find_tool_block(read.id).is_pending

        assert worker.resume()
        assert worker.status is WorkerStatus.ACTING
        worker.step()
        assert not worker.context.find_tool_block(read.id).is_pending
        assert _tool_result(worker, read.id) == "alpha"
        assert worker.status is WorkerStatus.THINKING

    def test_pause_during_llm_call(self, make_worker, adapter):
        adapter.add("Dev", complete("ok"))
        executor = ManualExecutor()
        worker = make_worker("Dev", executor=executor)
        worker.step()
        worker.step()

        worker.pause()
        executor.run_pending()
        worker.resume()
        assert worker.status is WorkerStatus.THINKING
        worker.step()
        assert worker.status is WorkerStatus.ACTING

    def test_pause_idle_is_a_noop(self, make_worker):
        worker = make_worker("Dev", task=None)
        assert not worker.pause()
        assert not worker.resume()
        assert worker.status is WorkerStatus.IDLE

    def test_parent_message_folds_into_context(self, make_worker, adapter):
        adapter.add("Dev", complete())
        executor = ManualExecutor()
        worker = make_worker("Dev", executor=executor)
        worker.step()
        worker.step()
        assert worker.iteration_count == 1

        worker.mailbox.post_from_parent("Also add tests")
        worker.step()

        blocks = worker.context.get_blocks()
        assert blocks[-2].type is BlockType.ASSISTANT
        assert blocks[-2].messages[0]["content"] == FURTHER_INPUT_PROMPT
        assert blocks[-1].messages[0]["content"] == "Also add tests"
        assert worker.iteration_count == 1
        assert worker.llm_call_in_flight
        assert worker.status is WorkerStatus.THINKING


class TestErrors:
    def test_invalid_json_arguments(self, make_worker, adapter):
        bad = ToolCall("Read", "{not json", id="bad1")
        not_object = ToolCall("Read", "[1, 2]", id="bad2")
        adapter.add("Dev", reply(bad, not_object), complete())
        worker = make_worker("Dev")
        run_until_idle(worker)

        for tool_call_id in ("bad1", "bad2"):
            assert _tool_result(worker, tool_call_id).startswith(
                "Invalid tool use, unable to parse tool arguments:"
            )

    def test_unknown_and_unavailable_tools(self, make_worker, adapter):
        unknown = ToolCall("Teleport", "{}", id="u1")
        not_granted = ToolCall("Bash", json.dumps({"command": "ls"}), id="u2")
        adapter.add("Dev", reply(unknown, not_granted), complete())
        worker = make_worker("Dev")
        run_until_idle(worker)

        assert _tool_result(worker, "u1") == "Failed to use tool, no tool of that type exists"
        assert _tool_result(worker, "u2") == "Failed to use tool, no tool of that type exists"

    def test_no_tool_calls_pauses(self, make_worker, adapter, events):
        adapter.add("Dev", reply(text="All done!"))
        worker = make_worker("Dev")
        step_until(worker, WorkerStatus.PAUSED)

        last = worker.context.get_blocks()[-1]
        assert last.type is BlockType.ASSISTANT
        assert last.messages[0]["content"] == "All done!"
        error = events.get_events(types={TASK_ERROR})[-1]
        assert "No Tool Calls" in error.content[0]

        adapter.add("Dev", complete("fine"))
        worker.resume()
        assert worker.status is WorkerStatus.THINKING
        run_until_idle(worker)
        assert worker.final_result == "fine"

    def test_transport_error_pauses(self, make_worker, adapter, events):
        adapter.add("Dev", TransportError("boom", provider="fake"))
        worker = make_worker("Dev")
        step_until(worker, WorkerStatus.PAUSED)

        error = events.get_events(types={TASK_ERROR})[-1]
        assert error.content[0] == "LLM call failed: boom"
        assert not worker.llm_call_in_flight

    def test_tool_exception_becomes_result(self, make_worker, adapter, events, workdir):
        (workdir / "a.txt").write_text("alpha")
        edit = call("MultiEdit", file_path="a.txt", edits=[{"old_string": "beta", "new_string": "x"}])
        adapter.add("Dev", reply(edit), complete())
        worker = make_worker("Dev")
        run_until_idle(worker)

        assert _tool_result(worker, edit.id) == "Error: Edit 1: old_string not found in a.txt"
        assert TOOL_ERROR in _types(events)
        assert (workdir / "a.txt").read_text() == "alpha"


class TestProjectContext:
    def test_context_block_and_refresh(self, make_worker, adapter, events):
        content = {"text": "Uses FastAPI"}
        worker = make_worker("Dev", task=None, context_provider=lambda: content["text"])

        blocks = worker.context.get_blocks_by_type(BlockType.CONTEXT)
        assert len(blocks) == 1
        assert blocks[0].messages == [
            {"role": "user", "content": "Uses FastAPI"},
            {"role": "assistant", "content": CONTEXT_ACK},
        ]

        content["text"] = "Uses FastAPI and pydantic"
        assert worker.refresh_context()
        blocks = worker.context.get_blocks_by_type(BlockType.CONTEXT)
        assert len(blocks) == 1
        assert blocks[0].messages[0]["content"] == "Uses FastAPI and pydantic"
        assert blocks[0].metadata["context_version"] == 2
        assert CONTEXT_REFRESH in _types(events)

    def test_no_provider_content(self, make_worker):
        worker = make_worker("Dev", task=None, context_provider=lambda: None)
        assert worker.context.get_blocks_by_type(BlockType.CONTEXT) == []
        assert not worker.refresh_context()
