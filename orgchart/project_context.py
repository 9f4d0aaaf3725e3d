"""Project context provider backed by a markdown file.

Workers built with a ``context_provider`` start with a CONTEXT block and
replace it on ``refresh_context()``. This provider serves
``<working_dir>/.orgchart/context.md``: whoever maintains that file (a
person, or a worker told to write it) keeps every worker's view of the
project current.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger("orgchart")

CONTEXT_FILE = Path(".orgchart") / "context.md"

CONTEXT_HEADER = """\
# Collective Project Context

The following is a shared summary of the current project, maintained
alongside the code. Treat it as background; the files themselves are
authoritative when the two disagree.
"""


class ProjectContextProvider:
    """Callable returning the project context text, or None when there is none.

    The file is re-read only when its modification time changes.
    """

    def __init__(self, working_dir: Path):
        self.path = Path(working_dir) / CONTEXT_FILE
        self._mtime: Optional[float] = None
        self._content: Optional[str] = None

    def __call__(self) -> Optional[str]:
        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            self._mtime, self._content = None, None
            return None
        if mtime != self._mtime:
            try:
                text = self.path.read_text(encoding="utf-8").strip()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Could not read project context {self.path}: {e}")
                return self._content
            self._content = f"{CONTEXT_HEADER}\n{text}" if text else None
            self._mtime = mtime
            logger.debug(f"Project context loaded from {self.path} ({len(text)} chars)")
        return self._content
