#!/usr/bin/env python3
"""
Purchasing Tracker - Spreadsheet purchasing workflow with Slack notifications

CLI Commands:
    doctor             - Run preflight checks (deps, configs, secrets)
    statuses           - Print the status graph as JSON
    commands           - List commands available to a user
    run <command-id>   - Run a purchasing command on rows of a project sheet
    budget <project>   - Print the budget status message for a project
    serve              - Run the Slack webhook server

Usage:
    python main.py doctor
    python main.py statuses --include-test
    python main.py commands --as officer@example.com
    python main.py run mark_selected_submitted --sheet Rocket --rows 3-5,9 --as officer@example.com
    python main.py run mark_all_new --sheet Rocket --as member@example.com
    python main.py budget "Rocket Project"
    python main.py serve --port 8000
"""

import argparse
import json
import os
import sys

# Ensure project root is in path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


def _setup(config):
    from core.logging_config import setup_logging

    setup_logging(level=config.log_level, format_type=config.log_format)


def _confirm(prompt: str) -> bool:
    answer = input(f"{prompt} [y/N] ").strip().lower()
    return answer in ("y", "yes")


def cmd_doctor(args):
    """Run preflight checks."""
    from pathlib import Path

    print("=" * 50)
    print(" Purchasing Tracker - System Check")
    print("=" * 50)
    print()

    all_ok = True
    warnings = []

    print("[1/3] Core dependencies...")
    core_deps = [
        ("googleapiclient", "google-api-python-client", "Google Sheets API"),
        ("google_auth_oauthlib", "google-auth-oauthlib", "Google OAuth"),
        ("tenacity", "tenacity", "Retries"),
        ("requests", "requests", "Slack webhooks"),
        ("fastapi", "fastapi", "Slack endpoint"),
        ("dotenv", "python-dotenv", ".env loading"),
    ]
    for module, pip_name, description in core_deps:
        try:
            __import__(module)
            print(f"  OK: {pip_name} ({description})")
        except ImportError:
            print(f"  FAIL: {pip_name} not installed")
            all_ok = False

    print("[2/3] Configuration...")
    from core.config import ConfigurationError, load_config_from_env

    try:
        config = load_config_from_env()
        config.validate()
        print(f"  OK: Spreadsheet {config.sheets.spreadsheet_id[:20]}...")
    except ConfigurationError as e:
        print(f"  FAIL: {e}")
        all_ok = False
        config = None

    if config is not None and not Path(config.sheets.credentials_file).exists():
        print(f"  FAIL: {config.sheets.credentials_file} missing (OAuth client secrets)")
        all_ok = False

    print("[3/3] Secrets...")
    from core.secrets import ENV_VARS, missing_secrets

    missing = missing_secrets()
    for name, (_, description) in ENV_VARS.items():
        if name in missing:
            warnings.append(f"{name} not set ({description})")
            print(f"  WARN: {name} not set")
        else:
            print(f"  OK: {name}")

    print()
    print("=" * 50)
    if all_ok and not warnings:
        print(" STATUS: ALL CHECKS PASSED")
    elif all_ok:
        print(f" STATUS: PASSED WITH {len(warnings)} WARNING(S)")
        for w in warnings:
            print(f"   - {w}")
    else:
        print(" STATUS: SOME CHECKS FAILED")
        print(" Fix the issues above before proceeding.")
    print("=" * 50)

    return 0 if all_ok else 1


def cmd_statuses(args):
    """Print the status graph."""
    from schemas.statuses import status_graph_to_dict

    print(json.dumps(status_graph_to_dict(include_test=args.include_test), indent=2))
    return 0


def cmd_commands(args):
    """List the commands the given user can run."""
    from core.config import get_config
    from services.wiring import build_services

    config = get_config()
    _setup(config)
    services = build_services(config)

    session = services.session_for(args.acting_user or config.acting_user_email)
    user = session.current_user()
    available = services.commands.available_for(user, session.is_admin())

    who = user.email or "anonymous user"
    print(f"Commands available to {who}:")
    for command in available:
        print(f"  {command.id:<40} {command.label}")
    return 0


def cmd_run(args):
    """Run one purchasing command."""
    from core.config import get_config
    from models.purchasing import RowRange
    from services.commands import CommandContext, Feedback
    from services.wiring import build_services

    config = get_config()
    _setup(config)
    services = build_services(config)

    try:
        selection = RowRange.parse(args.rows) if args.rows else []
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    try:
        services.commands.get(args.command_id)
    except KeyError as e:
        print(f"Error: {e.args[0]}")
        return 1

    context = CommandContext(
        sheet=args.sheet,
        session=services.session_for(args.acting_user or config.acting_user_email, prompt=input),
        selection=selection,
        confirm=(lambda prompt: True) if args.yes else _confirm,
    )
    feedback = Feedback()
    services.commands.run(args.command_id, context, feedback)

    for level, message in feedback.messages:
        print(f"[{level.upper()}] {message}")
    return 1 if feedback.has_errors else 0


def cmd_budget(args):
    """Print the budget status message for a project."""
    from core.config import get_config
    from services.wiring import build_services

    config = get_config()
    _setup(config)
    services = build_services(config)

    print(json.dumps(services.projects.build_project_status_message(args.project), indent=2))
    return 0


def cmd_serve(args):
    """Run the Slack webhook server."""
    import uvicorn
    from core.config import get_config

    config = get_config()
    _setup(config)
    uvicorn.run("api.main:app", host=args.host, port=args.port)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Purchasing Tracker - spreadsheet purchasing workflow with Slack notifications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py doctor
    python main.py statuses
    python main.py commands --as officer@example.com
    python main.py run mark_selected_submitted --sheet Rocket --rows 3-5,9 --as officer@example.com
    python main.py run fast_forward_selected_received --sheet Rocket --rows 7 --yes
    python main.py budget Rocket
    python main.py serve --port 8000
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("doctor", help="Run preflight checks")

    statuses_parser = subparsers.add_parser("statuses", help="Print the status graph")
    statuses_parser.add_argument("--include-test", action="store_true", help="Include the Test status")

    commands_parser = subparsers.add_parser("commands", help="List available commands")
    commands_parser.add_argument("--as", dest="acting_user", help="Acting user email")

    run_parser = subparsers.add_parser("run", help="Run a purchasing command")
    run_parser.add_argument("command_id", help="Command id (see: main.py commands)")
    run_parser.add_argument("--sheet", required=True, help="Project sheet name")
    run_parser.add_argument("--rows", help="Selected rows, e.g. 3-5,9")
    run_parser.add_argument("--as", dest="acting_user", help="Acting user email")
    run_parser.add_argument("--yes", action="store_true", help="Answer yes to confirmation prompts")

    budget_parser = subparsers.add_parser("budget", help="Show a project's budget status")
    budget_parser.add_argument("project", help="Project name or sheet name")

    serve_parser = subparsers.add_parser("serve", help="Run the Slack webhook server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "doctor": cmd_doctor,
        "statuses": cmd_statuses,
        "commands": cmd_commands,
        "run": cmd_run,
        "budget": cmd_budget,
        "serve": cmd_serve,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
