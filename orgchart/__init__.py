"""Delegation-and-execution engine for hierarchies of LLM-driven workers.

Lazy imports so that ``config`` and the leaf modules (logging, event_bus)
can be imported without pulling in the LLM SDKs.
"""


def __getattr__(name: str):
    if name in ("Orchestrator", "create_orchestrator"):
        from .orchestrator import Orchestrator, create_orchestrator
        return Orchestrator if name == "Orchestrator" else create_orchestrator
    if name in ("Worker", "WorkerStatus", "WorkerSnapshot"):
        from . import worker
        return getattr(worker, name)
    if name in ("ROLES", "get_role"):
        from .roles import ROLES, get_role
        return ROLES if name == "ROLES" else get_role
    if name == "TOOLS":
        from .tools import TOOLS
        return TOOLS
    raise AttributeError(f"module 'orgchart' has no attribute {name!r}")
