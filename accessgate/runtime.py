"""Runtime wiring for the access gate."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from .config import ConfigBundle, ConfigError, ConfigManager
from .ipacl import AccessChecker, AccessDecision, RuleSet, build

log = logging.getLogger(__name__)


def _log_rejected(kind: str, rules: RuleSet) -> None:
    for entry in rules.rejected:
        log.warning("Ignoring unparsable %s entry %r", kind, entry)


class AccessRuntime:
    """Owns the active configuration and the checker built from it.

    Reloading never touches the published checker; a new one is built and
    the reference swapped, so requests in flight keep a consistent view."""

    def __init__(self, config_dir: Path):
        self._config_manager = ConfigManager(
            config_dir / "daemon.json",
            config_dir / "access.json",
        )
        self._bundle: Optional[ConfigBundle] = None
        self._checker: Optional[AccessChecker] = None
        self._admin_checker: Optional[AccessChecker] = None
        self._lock = asyncio.Lock()

    @property
    def config_bundle(self) -> ConfigBundle:
        if self._bundle is None:
            raise ConfigError("Configuration not loaded")
        return self._bundle

    @property
    def checker(self) -> Optional[AccessChecker]:
        return self._checker

    @property
    def admin_checker(self) -> Optional[AccessChecker]:
        return self._admin_checker

    async def initialize(self) -> None:
        async with self._lock:
            bundle = self._config_manager.load()
            self._apply_bundle(bundle)

    async def reload(self) -> None:
        async with self._lock:
            bundle = self._config_manager.load()
            log.info("Configuration reload requested")
            self._apply_bundle(bundle)

    async def shutdown(self) -> None:
        async with self._lock:
            self._checker = None
            self._admin_checker = None
            self._bundle = None

    def _apply_bundle(self, bundle: ConfigBundle) -> None:
        checker = build(bundle.access.allow, bundle.access.deny)
        _log_rejected("allow", checker.allow)
        _log_rejected("deny", checker.deny)
        admin_checker = build(bundle.daemon.admin.networks, None)
        _log_rejected("admin network", admin_checker.allow)

        self._bundle = bundle
        self._checker = checker
        self._admin_checker = admin_checker
        log.info(
            "Access rules loaded: %d allow, %d deny",
            len(checker.allow.rules),
            len(checker.deny.rules),
        )

    def evaluate(self, address: str) -> AccessDecision:
        checker = self._checker
        if checker is None:
            return AccessDecision(allowed=True, reason="no rules configured")
        return checker.evaluate(address)


__all__ = ["AccessRuntime"]
