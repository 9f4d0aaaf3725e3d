#!/usr/bin/env python3
"""orgchart - main entry point.

Runs a task through a tree of LLM workers in this process, printing the
progress events as they happen, or serves the engine over HTTP/SSE.

Usage:
    python main.py "Add a /health endpoint"         # Run with the default agent
    python main.py --agent SeniorSoftwareEngineer "Refactor the parser"
    python main.py --verbose "..."                  # Full debug log on the console
    python main.py --serve                          # FastAPI server (uvicorn)
    python main.py --serve "..."                    # Serve and start a task
    python main.py --list-agents                    # Show the role registry

While a task runs, Ctrl-C pauses the current worker and prompts for input:
    <text>       - Send a message to the paused worker and resume it
    /resume      - Resume without a message
    /status      - Show the worker tree
    /quit        - Stop and exit
"""

import argparse
import sys
import time
from datetime import datetime
from pathlib import Path

import config
from orgchart.errors import ConfigError, UnknownRoleError
from orgchart.event_bus import (
    DELEGATION,
    DELEGATION_DONE,
    DELEGATION_FAILED,
    DISPLAY_EVENTS,
    MAX_ITERATIONS,
    OrgchartEvent,
    QUESTION,
    TASK_COMPLETE,
    TASK_ERROR,
    TODO_UPDATED,
    TOOL_ERROR,
)
from orgchart.logging import get_current_log_path, setup_logging
from orgchart.orchestrator import Orchestrator, create_orchestrator
from orgchart.roles import ROLES
from orgchart.worker import WorkerSnapshot

# ---- ANSI colors ----

_USE_COLOR = True


def _c(code: str, text: str) -> str:
    if not _USE_COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def dim(text: str) -> str:
    return _c("2", text)


def cyan(text: str) -> str:
    return _c("36", text)


def green(text: str) -> str:
    return _c("32", text)


def yellow(text: str) -> str:
    return _c("33", text)


def red(text: str) -> str:
    return _c("31", text)


def bold(text: str) -> str:
    return _c("1", text)


_EVENT_COLORS = {
    TASK_COMPLETE: green,
    TASK_ERROR: red,
    MAX_ITERATIONS: red,
    TOOL_ERROR: red,
    DELEGATION: cyan,
    DELEGATION_DONE: cyan,
    DELEGATION_FAILED: yellow,
    TODO_UPDATED: dim,
    QUESTION: yellow,
}


# ---- Event display ----

def display_event(event: OrgchartEvent) -> None:
    """EventBus listener printing display events to stdout."""
    if event.type not in DISPLAY_EVENTS:
        return
    # Warnings and errors reach the console through the logger
    if event.level in ("warning", "error") and config.get("console_format", "simple") != "clean":
        return
    color = _EVENT_COLORS.get(event.type, lambda s: s)
    print(f"{dim(f'[{event.agent}]')} {color(event.title)}")
    for chunk in event.content:
        for line in chunk.splitlines():
            print(f"    {line}")


def print_tree(snapshot: WorkerSnapshot, indent: int = 0) -> None:
    pct = f"{100 * snapshot.context_used / snapshot.max_context:.0f}%" if snapshot.max_context else "-"
    print(
        f"  {'  ' * indent}{bold(snapshot.name)} {dim(snapshot.instance_id)} "
        f"{snapshot.status}  ${snapshot.cost:.4f}  ctx {pct}"
    )
    for child in snapshot.children:
        print_tree(child, indent + 1)


def print_agents() -> None:
    width = max(len(r.id) for r in ROLES.values())
    for role in sorted(ROLES.values(), key=lambda r: (-r.level, r.id)):
        print(f"  {role.id:<{width}}  L{role.level}  {dim(role.model)}")
        print(f"  {'':<{width}}      {role.description}")


def print_summary(orchestrator: Orchestrator) -> None:
    snapshot = orchestrator.snapshot()
    print()
    print("-" * 60)
    if snapshot is not None:
        print(f"  Total cost: ${snapshot.total_cost:.4f}")
    log_path = get_current_log_path()
    if log_path is not None:
        print(f"  Log file:   {log_path}")
    print("-" * 60)


# ---- Interactive control ----

def prompt_paused(orchestrator: Orchestrator) -> bool:
    """Read commands while the tree is paused. Returns False to quit."""
    print(yellow("\n  Paused. Type a message to continue, /resume, /status or /quit."))
    while True:
        try:
            user_input = input(cyan("> ")).strip()
        except (EOFError, KeyboardInterrupt):
            return False
        if not user_input:
            continue
        if user_input.startswith("/"):
            cmd = user_input[1:].lower().strip()
            if cmd in ("quit", "exit", "q"):
                return False
            if cmd == "resume":
                orchestrator.resume()
                return True
            if cmd == "status":
                snapshot = orchestrator.snapshot()
                if snapshot is not None:
                    print_tree(snapshot)
                continue
            print(red(f"  Unknown command: /{cmd}"))
            continue
        orchestrator.send_input(user_input)
        orchestrator.resume()
        return True


def run_task(orchestrator: Orchestrator, agent_id: str, task: str) -> int:
    """Run *task* to completion on the tick thread. Returns the exit code."""
    orchestrator.start_task(agent_id, task)
    orchestrator.run()
    try:
        while not orchestrator.is_idle():
            try:
                time.sleep(0.2)
                if orchestrator.is_paused() and not prompt_paused(orchestrator):
                    return 130
            except KeyboardInterrupt:
                orchestrator.pause()
                if not prompt_paused(orchestrator):
                    return 130
    finally:
        orchestrator.stop()

    result = orchestrator.result() or ""
    print()
    print(bold("Result:"))
    print(result)
    return 1 if result.startswith("Task failed:") else 0


def serve(orchestrator: Orchestrator, host: str, port: int) -> None:
    import uvicorn

    from api.app import create_app

    uvicorn.run(create_app(orchestrator), host=host, port=port)


# ---- Main ----

def main():
    global _USE_COLOR

    parser = argparse.ArgumentParser(
        description="Run a task through a hierarchy of LLM workers"
    )
    parser.add_argument(
        "task", nargs="?", default=None,
        help="Task for the root worker",
    )
    parser.add_argument(
        "--agent", "-a", default=config.DEFAULT_AGENT,
        help=f"Role id of the root worker (default: {config.DEFAULT_AGENT})",
    )
    parser.add_argument(
        "--provider", default=None,
        help=f"LLM provider: openrouter, openai or anthropic (default: {config.LLM_PROVIDER})",
    )
    parser.add_argument(
        "--working-dir", "-C", type=Path, default=None,
        help="Directory the file and shell tools operate in (default: current directory)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Show the full debug log (LLM calls, token usage, state changes)",
    )
    parser.add_argument(
        "--no-color", action="store_true",
        help="Disable ANSI color output",
    )
    parser.add_argument(
        "--serve", action="store_true",
        help="Serve the engine over HTTP instead of running in the terminal",
    )
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument(
        "--list-agents", action="store_true",
        help="List the available roles and exit",
    )
    args = parser.parse_args()

    if args.no_color:
        _USE_COLOR = False

    if args.list_agents:
        print_agents()
        return

    if args.task is None and not args.serve:
        parser.error("a task is required unless --serve is given")

    setup_logging(verbose=args.verbose)

    run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    try:
        orchestrator = create_orchestrator(
            provider=args.provider,
            working_dir=args.working_dir,
            run_id=run_id,
        )
    except ConfigError as e:
        print(red(f"Configuration error: {e}"))
        sys.exit(2)

    # The console logger already prints every event in verbose mode
    if not args.verbose:
        orchestrator.events.subscribe(display_event)

    try:
        if args.serve:
            if args.task:
                orchestrator.start_task(args.agent, args.task)
            serve(orchestrator, args.host, args.port)
            return
        code = run_task(orchestrator, args.agent, args.task)
    except UnknownRoleError as e:
        print(red(str(e)))
        sys.exit(2)
    finally:
        print_summary(orchestrator)
        orchestrator.shutdown()
    sys.exit(code)


if __name__ == "__main__":
    main()
