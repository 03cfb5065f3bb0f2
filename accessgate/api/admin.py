"""
    Admin endpoints.

    Those endpoints are usually exposed only to localhost. Additional networks
    can be granted access through ``admin.networks`` in daemon.json. The admin
    endpoints allow inspecting the active rules, checking single addresses,
    reloading the rules (as SIGHUP) and terminating the daemon (as SIGTERM).
"""
from __future__ import annotations

import ipaddress
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ..config import ConfigError
from ..ipacl import AccessDecision, RuleSet, extract_address, is_allowed
from ..runtime import AccessRuntime

router = APIRouter()


async def get_runtime(request: Request) -> AccessRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None or runtime.checker is None:
        raise HTTPException(status_code=503, detail="Access gate not ready")
    return runtime


def _is_loopback(host: str) -> bool:
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def _require_local_access(request: Request, runtime: AccessRuntime) -> None:
    """
        Require local access enforces that our peer is a loopback address,
        the unix domain socket or inside one of the admin networks.
    """
    client = request.client
    if client is None:
        # Unix domain socket, filesystem permissions guard the endpoint
        return

    host = client.host
    if _is_loopback(host):
        return

    admin_checker = runtime.admin_checker
    if admin_checker is None or not admin_checker.has_rules():
        raise HTTPException(status_code=403, detail="Forbidden")
    if not is_allowed(admin_checker, host):
        raise HTTPException(status_code=403, detail="Forbidden")


def _describe_rules(rules: RuleSet) -> Dict[str, Any]:
    return {
        "configured": rules.configured,
        "rules": [str(network) for network in rules.rules],
        "rejected": list(rules.rejected),
    }


def _describe_decision(address: str, decision: AccessDecision) -> Dict[str, Any]:
    return {
        "address": address,
        "allowed": decision.allowed,
        "reason": decision.reason,
        "rule": str(decision.rule) if decision.rule is not None else None,
    }


@router.get("/healthz")
async def healthz():
    return JSONResponse({"status": "ok"})


@router.get("/admin/rules")
async def admin_rules(request: Request, runtime: AccessRuntime = Depends(get_runtime)):
    """
        Effective allow and deny rules together with the entries that
        were dropped because they did not parse.
    """
    _require_local_access(request, runtime)
    checker = runtime.checker
    payload = {
        "allow": _describe_rules(checker.allow),
        "deny": _describe_rules(checker.deny),
    }
    return JSONResponse(payload)


@router.get("/admin/check")
async def admin_check(
    request: Request,
    runtime: AccessRuntime = Depends(get_runtime),
    address: str = Query(...),
):
    """
        Evaluate an address (optionally with port) against the active rules.
    """
    _require_local_access(request, runtime)
    bare = extract_address(address)
    return JSONResponse(_describe_decision(bare, runtime.evaluate(bare)))


@router.post("/admin/reload")
async def admin_reload(request: Request, runtime: AccessRuntime = Depends(get_runtime)):
    """
        Rebuilds the access rules - this re-reads configuration files (!)
        This is equal to SIGHUP.
    """
    _require_local_access(request, runtime)
    try:
        await runtime.reload()
    except ConfigError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return JSONResponse({"status": "reloaded"})


@router.post("/admin/shutdown")
async def admin_shutdown(request: Request, runtime: AccessRuntime = Depends(get_runtime)):
    """
        Terminate our server like SIGTERM
    """
    _require_local_access(request, runtime)
    server = getattr(request.app.state, "server", None)
    if server is None:
        raise HTTPException(status_code=503, detail="Shutdown controller unavailable")
    if hasattr(server, "should_exit"):
        server.should_exit = True
    return JSONResponse({"status": "shutting_down"})


__all__ = ["router"]
