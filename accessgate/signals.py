"""Signal handling utilities."""
from __future__ import annotations

import asyncio
import signal
import logging
from typing import Set

from .runtime import AccessRuntime

log = logging.getLogger(__name__)

# the loop only keeps weak references to tasks
_pending_reloads: Set[asyncio.Task] = set()

def install_signal_handlers(runtime: AccessRuntime, enable_reload: bool) -> None:
    """Rebuild the access rules on SIGHUP.

    SIGTERM stays with uvicorn, which already performs a graceful shutdown."""
    if not enable_reload:
        return

    loop = asyncio.get_running_loop()

    def _sighup_handler():
        log.info("SIGHUP received; rebuilding access rules")
        task = asyncio.create_task(_reload(runtime))
        _pending_reloads.add(task)
        task.add_done_callback(_pending_reloads.discard)

    try:
        loop.add_signal_handler(signal.SIGHUP, _sighup_handler)
    except (AttributeError, NotImplementedError):  # pragma: no cover - Windows
        log.debug("Event loop does not support SIGHUP handlers")
    except (RuntimeError, ValueError):
        # only the main thread may install handlers (e.g. under a test client)
        log.debug("Not running in the main thread; SIGHUP handler not installed")


async def _reload(runtime: AccessRuntime) -> None:
    try:
        await runtime.reload()
    except Exception:
        log.exception("Reload failed; keeping previous access rules")

__all__ = ["install_signal_handlers"]
