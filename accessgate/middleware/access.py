from __future__ import annotations

import logging
from typing import Callable

# We use starlette since FastAPI is built on starlette and so it's always
# already installed

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..ipacl import extract_address, is_allowed
from ..log import describe_peer

log = logging.getLogger(__name__)


def peer_address(request: Request) -> str:
    """Return the raw ``host:port`` form of the connecting peer.

    Requests arriving on a Unix domain socket carry no peer and yield an
    empty string."""
    client = request.client
    if client is None:
        return ""
    host = client.host
    if ":" in host:
        return f"[{host}]:{client.port}"
    return f"{host}:{client.port}"


class AccessControlMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:
        runtime = getattr(request.app.state, "runtime", None)
        checker = runtime.checker if runtime is not None else None

        raw_peer = peer_address(request)
        address = extract_address(raw_peer)
        if not is_allowed(checker, address):
            log.info("Rejected %s %s from %s", request.method, request.url.path, describe_peer(raw_peer, address))
            return JSONResponse({"detail": "Forbidden"}, status_code=403)

        request.state.peer_address = address
        return await call_next(request)


__all__ = ["AccessControlMiddleware", "peer_address"]
