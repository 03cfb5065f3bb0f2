"""ASGI application factory."""

from __future__ import annotations

import os
from pathlib import Path

from fastapi import FastAPI

from .api import admin as admin_router
from .config import load_daemon_config
from .log import configure_logging
from .middleware.access import AccessControlMiddleware
from .runtime import AccessRuntime
from .signals import install_signal_handlers


def resolve_config_dir(config_dir: str | os.PathLike[str] | None) -> Path:
    if config_dir is not None:
        return Path(config_dir)
    env_dir = os.environ.get("ACCESSGATE_CONFIG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.cwd() / "config"


def create_app(config_dir: str | os.PathLike[str] | None = None) -> FastAPI:
    cfg_dir = resolve_config_dir(config_dir)
    runtime = AccessRuntime(cfg_dir)

    app = FastAPI(
        title="mini-accessgate",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.add_middleware(AccessControlMiddleware)
    app.include_router(admin_router.router)

    app.state.runtime = runtime

    @app.on_event("startup")
    async def on_startup() -> None:
        # logging is configured before the first rule load
        configure_logging(load_daemon_config(cfg_dir / "daemon.json").logging)
        await runtime.initialize()
        install_signal_handlers(runtime, runtime.config_bundle.daemon.reload.enable_sighup)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await runtime.shutdown()

    return app


__all__ = ["create_app", "resolve_config_dir"]
