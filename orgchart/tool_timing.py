import time


class ToolTimer:
    """Context manager for timing tool execution."""
    def __init__(self):
        self._start = 0.0
        self.elapsed_ms = 0

    def __enter__(self):
        self._start = time.monotonic()
        return self

    def __exit__(self, *exc):
        self.elapsed_ms = int((time.monotonic() - self._start) * 1000)
        return False


def timed(fn, *args, **kwargs) -> tuple:
    """Call ``fn(*args, **kwargs)`` and return ``(result, elapsed_ms)``.

    Exceptions propagate unchanged; this is what the worker submits to its
    executor so the elapsed time travels back with the result.
    """
    with ToolTimer() as timer:
        result = fn(*args, **kwargs)
    return result, timer.elapsed_ms
