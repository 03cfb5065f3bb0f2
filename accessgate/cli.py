"""Console entry point for the access gate."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

import httpx
import uvicorn

from .app import create_app, resolve_config_dir
from .config import ConfigError, DaemonConfig, load_access_config, load_daemon_config
from .ipacl import AccessChecker, RuleSet, build, extract_address


def _load_daemon(cfg_dir: Path) -> DaemonConfig:
    try:
        return load_daemon_config(cfg_dir / "daemon.json")
    except ConfigError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        sys.exit(1)


def _load_checker(cfg_dir: Path) -> AccessChecker:
    try:
        access = load_access_config(cfg_dir / "access.json")
    except ConfigError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        sys.exit(1)
    return build(access.allow, access.deny)


def _admin_base_url(daemon_cfg: DaemonConfig) -> str:
    host = daemon_cfg.listen.host
    if host in ("0.0.0.0", ""):
        host = "127.0.0.1"
    elif host == "::":
        host = "::1"
    if ":" in host:
        return f"http://[{host}]:{daemon_cfg.listen.port}"
    return f"http://{host}:{daemon_cfg.listen.port}"


def _perform_admin_action(url: str, timeout: float) -> None:
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(url)
    except (httpx.HTTPError, OSError) as exc:
        print(f"[error] Admin request failed: {exc}", file=sys.stderr)
        sys.exit(1)

    if response.status_code >= 400:
        print(
            f"[error] Admin endpoint returned {response.status_code}: {response.text}",
            file=sys.stderr,
        )
        sys.exit(1)

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict) and "status" in payload:
        print(payload["status"])
    else:
        print(f"Request succeeded ({response.status_code})")


def _print_rules(kind: str, rules: RuleSet) -> None:
    if not rules.configured:
        print(f"{kind}: (none)")
    else:
        print(f"{kind}:")
        for network in rules.rules:
            print(f"  {network}")
    for entry in rules.rejected:
        print(f"  ignored: {entry!r}")


def _command_start(args: argparse.Namespace) -> None:
    cfg_dir = resolve_config_dir(getattr(args, "config_dir", None))
    daemon_cfg = _load_daemon(cfg_dir)

    host = getattr(args, "host", None) or daemon_cfg.listen.host
    port = getattr(args, "port", None) or daemon_cfg.listen.port

    try:
        app = create_app(cfg_dir)
    except ConfigError as exc:  # pragma: no cover - runtime setup error
        print(f"[error] Failed to create application: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    print(f"mini-accessgate starting on http://{host}:{port}")
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=daemon_cfg.logging.level.lower(),
    )
    server = uvicorn.Server(config)
    app.state.server = server
    server.run()


def _command_check(args: argparse.Namespace) -> None:
    cfg_dir = resolve_config_dir(args.config_dir)
    checker = _load_checker(cfg_dir)

    denied = False
    for raw in args.addresses:
        address = extract_address(raw)
        decision = checker.evaluate(address)
        verdict = "allow" if decision.allowed else "deny"
        detail = decision.reason
        if decision.rule is not None:
            detail = f"{detail} {decision.rule}"
        print(f"{raw}\t{verdict}\t{detail}")
        denied = denied or not decision.allowed

    if denied:
        sys.exit(1)


def _command_rules(args: argparse.Namespace) -> None:
    cfg_dir = resolve_config_dir(args.config_dir)
    checker = _load_checker(cfg_dir)
    _print_rules("allow", checker.allow)
    _print_rules("deny", checker.deny)


def _admin_command(args: argparse.Namespace, path: str) -> None:
    if args.admin_url:
        base_url = args.admin_url
    else:
        cfg_dir = resolve_config_dir(args.config_dir)
        base_url = _admin_base_url(_load_daemon(cfg_dir))
    _perform_admin_action(f"{base_url.rstrip('/')}{path}", args.timeout)


def _command_reload(args: argparse.Namespace) -> None:
    _admin_command(args, "/admin/reload")


def _command_stop(args: argparse.Namespace) -> None:
    _admin_command(args, "/admin/shutdown")


def build_parser() -> argparse.ArgumentParser:
    start_parent = argparse.ArgumentParser(add_help=False)
    start_parent.add_argument("--config-dir", help="Directory containing configuration files")
    start_parent.add_argument("--host", help="Override listen host")
    start_parent.add_argument("--port", type=int, help="Override listen port")

    parser = argparse.ArgumentParser(description="mini-accessgate service management", parents=[start_parent])
    subparsers = parser.add_subparsers(dest="command")

    start_parser = subparsers.add_parser("start", help="Start the access gate", parents=[start_parent])
    start_parser.set_defaults(func=_command_start)

    check_parser = subparsers.add_parser("check", help="Evaluate addresses against the configured rules")
    check_parser.add_argument("--config-dir", help="Directory containing configuration files")
    check_parser.add_argument("addresses", nargs="+", help="Addresses, optionally with port")
    check_parser.set_defaults(func=_command_check)

    rules_parser = subparsers.add_parser("rules", help="Show the effective access rules")
    rules_parser.add_argument("--config-dir", help="Directory containing configuration files")
    rules_parser.set_defaults(func=_command_rules)

    for name, func, help_text in (
        ("reload", _command_reload, "Reload access rules"),
        ("stop", _command_stop, "Request a graceful shutdown"),
    ):
        admin_parser = subparsers.add_parser(name, help=help_text)
        admin_parser.add_argument("--config-dir", help="Directory containing configuration files")
        admin_parser.add_argument("--admin-url", help="Override admin base URL (e.g. http://127.0.0.1:8080)")
        admin_parser.add_argument("--timeout", type=float, default=5.0, help="HTTP timeout in seconds")
        admin_parser.set_defaults(func=func)

    parser.set_defaults(func=_command_start)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":  # pragma: no cover
    main()
