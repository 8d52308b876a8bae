"""CLI entry point for workspace-manager.

Provides ``workspace-manager start`` and the ``workspace-manager notify``
subcommands used by tool hooks.

Import ordering is critical: ``load_config()`` must run before importing
``workspace_manager.main`` because that module calls ``configure_logging()``
at module-level import time.
"""

from __future__ import annotations

import argparse
import os
import sys


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workspace-manager",
        description="Track AI coding sessions across workspaces",
    )
    sub = parser.add_subparsers(dest="command")

    # workspace-manager start
    start_parser = sub.add_parser("start", help="Run the sync daemon and debug API")
    start_parser.add_argument("--host", help="Host to bind the debug API to")
    start_parser.add_argument("--port", type=int, help="Port to bind the debug API to")
    start_parser.add_argument("--socket", help="Notification socket path")

    # workspace-manager notify ...
    notify_parser = sub.add_parser("notify", help="Send a notification to the daemon")
    notify_parser.add_argument("--socket", help="Notification socket path")
    notify_sub = notify_parser.add_subparsers(dest="notify_command")

    register = notify_sub.add_parser("register", help="Announce a new session")
    register.add_argument("session_id")
    register.add_argument("project_path", nargs="?", default=None)
    register.add_argument("--tool", help="claude, kiro, opencode or codex (default: claude)")
    register.add_argument("--pane-id", type=int, dest="pane_id")

    status = notify_sub.add_parser("status", help="Report a session status")
    status.add_argument("session_id")
    status.add_argument("status", help="working, idle, needs_input, success, error, ...")
    status.add_argument("--message", "-m")
    status.add_argument("--tool")

    unregister = notify_sub.add_parser("unregister", help="Announce a session ended")
    unregister.add_argument("session_id")
    unregister.add_argument("--tool")

    tab_focus = notify_sub.add_parser("tab-focus", help="Report the focused multiplexer tab")
    tab_focus.add_argument("tab_name")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point (``workspace-manager`` command)."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "start":
        _run_start(args)
    elif args.command == "notify":
        if not args.notify_command:
            parser.parse_args(["notify", "--help"])
        sys.exit(_run_notify(args))
    else:
        parser.print_help()
        sys.exit(1)


def _run_start(args: argparse.Namespace) -> None:
    """Handle ``workspace-manager start``."""
    # Apply CLI flag overrides BEFORE loading config
    if args.host:
        os.environ["WORKSPACE_MANAGER_HOST"] = args.host
    if args.port:
        os.environ["WORKSPACE_MANAGER_PORT"] = str(args.port)
    if args.socket:
        os.environ["WORKSPACE_MANAGER_SOCKET_PATH"] = args.socket

    from workspace_manager.config import load_config

    load_config()

    from workspace_manager.main import run

    run()


def _run_notify(args: argparse.Namespace) -> int:
    """Handle ``workspace-manager notify``; always exits 0.

    Hooks call this on every tool event, so a missing daemon or a bad
    argument must never fail the calling tool.
    """
    if args.socket:
        os.environ["WORKSPACE_MANAGER_SOCKET_PATH"] = args.socket

    from workspace_manager.config import load_config

    load_config()

    from workspace_manager.log_config import configure_logging

    configure_logging()

    import structlog
    from pydantic import ValidationError

    from workspace_manager.notify import client

    logger = structlog.get_logger("workspace_manager.cli")
    try:
        if args.notify_command == "register":
            project_path = args.project_path or os.getcwd()
            client.notify_register(args.session_id, project_path, args.tool, args.pane_id)
        elif args.notify_command == "status":
            client.notify_status(args.session_id, args.status, args.message, args.tool)
        elif args.notify_command == "unregister":
            client.notify_unregister(args.session_id, args.tool)
        elif args.notify_command == "tab-focus":
            client.notify_tab_focus(args.tab_name)
    except ValidationError as exc:
        logger.warning("Invalid notification", error=str(exc))
    return 0


if __name__ == "__main__":
    main()
