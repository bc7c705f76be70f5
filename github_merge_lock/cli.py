"""Command-line interface: ``github-merge-lock lock|unlock|status``."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

import requests
from dotenv import load_dotenv

from . import __version__
from .client import GitHubClient
from .config import Settings
from .errors import MergeLockError
from .rulesets import LockController, LockOptions, resolve_ruleset_name

logger = logging.getLogger(__name__)

ENV_LOCAL_FILENAME = ".env.local"
MODE = "ruleset"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UNLOCKED = 1
EXIT_STATUS_ERROR = 2


def load_local_env(cwd: Path | None = None, env: Mapping[str, str] | None = None) -> bool:
    """Load ``.env.local`` from ``cwd`` unless running in CI.

    Variables already present in the environment win. A file that resolves
    outside ``cwd`` (through a symlink) is ignored.
    """
    env = os.environ if env is None else env
    if env.get("CI"):
        return False
    cwd = (cwd or Path.cwd()).resolve()
    env_path = cwd / ENV_LOCAL_FILENAME
    if not env_path.exists():
        return False
    real_path = env_path.resolve()
    if not real_path.is_relative_to(cwd):
        logger.warning(
            "%s resolves outside the project directory, skipping", ENV_LOCAL_FILENAME
        )
        return False
    logger.debug("Loading environment from '%s'", real_path)
    return load_dotenv(real_path, override=False)


def _emit_json(payload: dict) -> None:
    print(json.dumps(payload))


def _ruleset_suffix(args: argparse.Namespace) -> str:
    return f" (ruleset: {resolve_ruleset_name(args.branch, args.ruleset_name)})"


def _options(args: argparse.Namespace) -> LockOptions:
    return LockOptions(
        owner=args.owner,
        repo=args.repo,
        branch=args.branch,
        ruleset_name=args.ruleset_name,
    )


def run_status(args: argparse.Namespace, controller: LockController) -> int:
    try:
        status = controller.get_status(_options(args))
    except (MergeLockError, requests.RequestException) as exc:
        if args.json:
            _emit_json({"error": str(exc), "mode": MODE})
        else:
            print(f"Error: {exc}", file=sys.stderr)
        return EXIT_STATUS_ERROR

    if args.json:
        _emit_json(
            {
                "locked": status.locked,
                "rulesetName": status.name,
                "rulesetId": status.ruleset_id,
                "enforcement": status.enforcement,
                "found": status.found,
                "mode": MODE,
            }
        )
        return EXIT_OK

    resolved_name = resolve_ruleset_name(args.branch, args.ruleset_name)
    print(f"Branch: {args.branch}")
    if status.found:
        print(f"Ruleset: {resolved_name} (id: {status.ruleset_id})")
        if status.enforcement:
            print(f"Enforcement: {status.enforcement}")
    else:
        print(f"Ruleset: {resolved_name} (not found)")
    print(f"Status: {'LOCKED' if status.locked else 'UNLOCKED'}")
    return EXIT_OK if status.locked else EXIT_UNLOCKED


def _run_dry_run(args: argparse.Namespace, controller: LockController) -> None:
    status = controller.get_status(_options(args))
    if args.json:
        _emit_json(
            {
                "dryRun": True,
                "action": args.command,
                "mode": MODE,
                "branch": args.branch,
                "owner": args.owner,
                "repo": args.repo,
                "currentStatus": status.locked,
                "rulesetName": status.name,
                "rulesetId": status.ruleset_id,
                "enforcement": status.enforcement,
                "found": status.found,
            }
        )
        return

    current = "LOCKED" if status.locked else "UNLOCKED"
    print(
        f'[DRY-RUN] Would {args.command} branch "{args.branch}" in '
        f"{args.owner}/{args.repo}{_ruleset_suffix(args)}"
    )
    if status.found:
        print(
            f"Current status: {current} (rulesetId: {status.ruleset_id}, "
            f"enforcement: {status.enforcement})"
        )
    else:
        print(f"Current status: {current} (ruleset not found)")


def run_toggle(args: argparse.Namespace, controller: LockController) -> int:
    """Handle ``lock`` and ``unlock``."""
    try:
        if args.dry_run:
            _run_dry_run(args, controller)
            return EXIT_OK
        operation = controller.lock if args.command == "lock" else controller.unlock
        changed = operation(_options(args))
    except (MergeLockError, requests.RequestException) as exc:
        if args.json:
            _emit_json({"success": False, "error": str(exc)})
        else:
            print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    if args.json:
        _emit_json(
            {
                "success": True,
                "changed": changed,
                "branch": args.branch,
                "owner": args.owner,
                "repo": args.repo,
                "mode": MODE,
                "rulesetName": resolve_ruleset_name(args.branch, args.ruleset_name),
            }
        )
    elif changed:
        verb = "Locked" if args.command == "lock" else "Unlocked"
        print(
            f'{verb} branch "{args.branch}" in {args.owner}/{args.repo}'
            f"{_ruleset_suffix(args)}"
        )
    else:
        state = "locked" if args.command == "lock" else "unlocked"
        print(
            f'Branch "{args.branch}" is already {state} in {args.owner}/{args.repo}'
            f"{_ruleset_suffix(args)}"
        )
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-o", "--owner", required=True, help="Repository owner")
    common.add_argument("-r", "--repo", required=True, help="Repository name")
    common.add_argument("-b", "--branch", required=True, help="Branch name")
    common.add_argument("--json", action="store_true", help="Output in JSON format")
    common.add_argument(
        "--ruleset-name",
        help="Ruleset name (default: github-merge-lock:<branch>)",
    )

    parser = argparse.ArgumentParser(
        prog="github-merge-lock",
        description="Lock/unlock GitHub branches via repository rulesets.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, help_text in (
        ("lock", "Lock a branch to prevent merges"),
        ("unlock", "Unlock a branch to allow merges"),
    ):
        toggle = subparsers.add_parser(command, parents=[common], help=help_text)
        toggle.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be done without making changes",
        )
        toggle.set_defaults(handler=run_toggle)

    status = subparsers.add_parser(
        "status", parents=[common], help="Check the lock status of a branch"
    )
    status.set_defaults(handler=run_status)
    return parser


def main(
    argv: Sequence[str] | None = None, controller: LockController | None = None
) -> int:
    log_level_name = os.environ.get("LOG_LEVEL", "WARNING").upper()
    numeric_level = getattr(logging, log_level_name, logging.WARNING)
    logging.basicConfig(
        level=numeric_level, format="%(asctime)s %(levelname)s %(name)s - %(message)s"
    )
    args = build_parser().parse_args(argv)
    if controller is None:
        load_local_env()
        controller = LockController.from_client(GitHubClient(Settings.from_env()))
    return args.handler(args, controller)


if __name__ == "__main__":
    sys.exit(main())
