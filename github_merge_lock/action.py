"""GitHub Actions entry point: ``python -m github_merge_lock.action <command>``.

Inputs arrive as ``INPUT_<NAME>`` environment variables and outputs are
appended to the file named by ``GITHUB_OUTPUT``.
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from collections.abc import Callable, Mapping
from pathlib import Path

import requests

from .client import GitHubClient
from .config import Settings
from .errors import MergeLockError
from .rulesets import LockController, LockOptions, resolve_ruleset_name

logger = logging.getLogger(__name__)

COMMANDS = ("lock", "unlock", "status")


class ActionInputError(MergeLockError):
    """Raised when a required action input is missing."""


def input_key(name: str) -> str:
    return f"INPUT_{name.replace(' ', '_').upper()}"


def get_input(env: Mapping[str, str], name: str, required: bool = False) -> str:
    value = (env.get(input_key(name)) or "").strip()
    if required and not value:
        raise ActionInputError(f"{name} is required.")
    return value


def resolve_repository(env: Mapping[str, str], owner: str, repo: str) -> tuple[str, str]:
    """Fill in owner/repo from the workflow context when inputs are empty."""
    owner = owner or env.get("GITHUB_REPOSITORY_OWNER", "")
    if not repo:
        repository = env.get("GITHUB_REPOSITORY", "")
        repo = repository.split("/", 1)[1] if "/" in repository else ""
    if not owner or not repo:
        raise ActionInputError(
            "owner/repo is required. Set inputs or GITHUB_REPOSITORY env."
        )
    return owner, repo


class ActionOutputs:
    """Writes step outputs to ``$GITHUB_OUTPUT``."""

    def __init__(self, env: Mapping[str, str]) -> None:
        path = env.get("GITHUB_OUTPUT")
        self.path = Path(path) if path else None
        self.values: dict[str, str] = {}

    def set(self, name: str, value: object) -> None:
        match value:
            case None:
                text = ""
            case bool():
                text = "true" if value else "false"
            case _:
                text = str(value)
        self.values[name] = text
        if self.path is None:
            logger.debug("GITHUB_OUTPUT is not set; output %s=%s not written", name, text)
            return
        # Heredoc form; values may span lines.
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(f"{name}<<{delimiter}\n{text}\n{delimiter}\n")


def run(
    command: str,
    env: Mapping[str, str] | None = None,
    controller_factory: Callable[[Settings], LockController] | None = None,
) -> int:
    env = os.environ if env is None else env
    outputs = ActionOutputs(env)
    try:
        token = get_input(env, "github_token", required=True)
        owner, repo = resolve_repository(
            env, get_input(env, "owner"), get_input(env, "repo")
        )
        branch = get_input(env, "branch", required=True)
        ruleset_name = get_input(env, "ruleset_name") or None

        settings = Settings.from_env(env).with_token(token)
        factory = controller_factory or (
            lambda s: LockController.from_client(GitHubClient(s))
        )
        controller = factory(settings)
        options = LockOptions(owner=owner, repo=repo, branch=branch, ruleset_name=ruleset_name)
        resolved_name = resolve_ruleset_name(branch, ruleset_name)

        if command == "status":
            status = controller.get_status(options)
            outputs.set("locked", status.locked)
            outputs.set("found", status.found)
            outputs.set("ruleset_id", status.ruleset_id)
            outputs.set("enforcement", status.enforcement)
            outputs.set("ruleset_name", status.name)
            print(f"Status: {'LOCKED' if status.locked else 'UNLOCKED'}")
            return 0

        changed = controller.lock(options) if command == "lock" else controller.unlock(options)
        outputs.set("changed", changed)
        outputs.set("ruleset_name", resolved_name)
        suffix = f"in {owner}/{repo} (ruleset: {resolved_name})"
        if changed:
            verb = "Locked" if command == "lock" else "Unlocked"
            print(f'{verb} branch "{branch}" {suffix}')
        else:
            state = "locked" if command == "lock" else "unlocked"
            print(f'Branch "{branch}" is already {state} {suffix}')
        return 0
    except (MergeLockError, requests.RequestException) as exc:
        print(f"::error::{exc}")
        return 1


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1 or argv[0] not in COMMANDS:
        print(f"usage: python -m github_merge_lock.action {{{','.join(COMMANDS)}}}", file=sys.stderr)
        return 2
    return run(argv[0])


if __name__ == "__main__":
    sys.exit(main())
