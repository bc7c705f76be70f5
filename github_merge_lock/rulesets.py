"""Branch lock/unlock through repository rulesets."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote

from .client import GitHubClient

logger = logging.getLogger(__name__)

RULESET_NAME_PREFIX = "github-merge-lock"
ACTIVE_ENFORCEMENTS: frozenset[str] = frozenset({"active", "enabled"})
RULESET_ENFORCEMENTS: frozenset[str] = ACTIVE_ENFORCEMENTS | {"disabled", "evaluate"}


@dataclass(frozen=True)
class RulesetSummary:
    """A ruleset as listed by the GitHub API."""

    id: int
    name: str
    target: str
    enforcement: str

    @classmethod
    def from_api(cls, data: dict) -> RulesetSummary:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            target=data.get("target", "branch"),
            enforcement=data.get("enforcement", "disabled"),
        )


@dataclass(frozen=True)
class LockOptions:
    owner: str
    repo: str
    branch: str
    ruleset_name: str | None = None


@dataclass(frozen=True)
class RulesetStatusResult:
    locked: bool
    found: bool
    name: str
    ruleset_id: int | None = None
    enforcement: str | None = None


def resolve_ruleset_name(branch: str, ruleset_name: str | None = None) -> str:
    """Return the explicit ruleset name, or ``github-merge-lock:<branch>``."""
    if ruleset_name and ruleset_name.strip():
        return ruleset_name
    return f"{RULESET_NAME_PREFIX}:{branch}"


def is_active_enforcement(enforcement: str | None) -> bool:
    return enforcement in ACTIVE_ENFORCEMENTS


def build_ref_name(branch: str) -> str:
    return f"refs/heads/{branch}"


def build_lock_ruleset(name: str, branch: str) -> dict:
    """Ruleset payload that blocks updates to ``branch``."""
    return {
        "name": name,
        "target": "branch",
        "enforcement": "active",
        "conditions": {
            "ref_name": {
                "include": [build_ref_name(branch)],
                "exclude": [],
            },
        },
        "rules": [
            {
                "type": "update",
                "parameters": {"update_allows_fetch_and_merge": False},
            },
        ],
    }


def _repo_path(owner: str, repo: str) -> str:
    return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"


class RulesetRepository:
    """Reads and writes branch rulesets of a repository."""

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    def list_rulesets(self, owner: str, repo: str) -> list[RulesetSummary]:
        # First page only; a repository with more than 100 branch rulesets is
        # not expected.
        body = self.client.get(
            f"{_repo_path(owner, repo)}/rulesets",
            params={"targets": "branch", "includes_parents": "false", "per_page": 100},
            owner=owner,
            repo=repo,
        )
        rulesets = [RulesetSummary.from_api(item) for item in body or []]
        logger.debug(
            "Fetched %d rulesets for repository '%s/%s'", len(rulesets), owner, repo
        )
        return rulesets

    def find_by_name(self, owner: str, repo: str, name: str) -> RulesetSummary | None:
        logger.debug("Searching for ruleset '%s' in repository '%s/%s'", name, owner, repo)
        ruleset = next(
            (r for r in self.list_rulesets(owner, repo) if r.name == name),
            None,
        )
        if ruleset:
            logger.debug(
                "Found ruleset '%s' (id=%s, enforcement=%s)",
                name,
                ruleset.id,
                ruleset.enforcement,
            )
        else:
            logger.debug("Ruleset '%s' not found in repository '%s/%s'", name, owner, repo)
        return ruleset

    def create(self, owner: str, repo: str, payload: dict) -> dict | None:
        logger.info(
            "Creating ruleset '%s' in repository '%s/%s'", payload.get("name"), owner, repo
        )
        return self.client.post(
            f"{_repo_path(owner, repo)}/rulesets", json=payload, owner=owner, repo=repo
        )

    def update_enforcement(
        self, owner: str, repo: str, ruleset_id: int, enforcement: str
    ) -> dict | None:
        if enforcement not in RULESET_ENFORCEMENTS:
            raise ValueError(f"Unknown ruleset enforcement '{enforcement}'")
        logger.info(
            "Setting enforcement of ruleset id=%s in repository '%s/%s' to '%s'",
            ruleset_id,
            owner,
            repo,
            enforcement,
        )
        return self.client.put(
            f"{_repo_path(owner, repo)}/rulesets/{ruleset_id}",
            json={"enforcement": enforcement},
            owner=owner,
            repo=repo,
        )


class LockController:
    """Moves a branch ruleset to the locked or unlocked state.

    Each operation reads the current ruleset fresh and issues at most one
    mutating call. Nothing is cached between calls.
    """

    def __init__(self, repository: RulesetRepository) -> None:
        self.repository = repository

    @classmethod
    def from_client(cls, client: GitHubClient) -> LockController:
        return cls(RulesetRepository(client))

    def _find(self, options: LockOptions) -> tuple[str, RulesetSummary | None]:
        name = resolve_ruleset_name(options.branch, options.ruleset_name)
        return name, self.repository.find_by_name(options.owner, options.repo, name)

    def get_status(self, options: LockOptions) -> RulesetStatusResult:
        name, ruleset = self._find(options)
        if ruleset is None:
            return RulesetStatusResult(locked=False, found=False, name=name)
        return RulesetStatusResult(
            locked=is_active_enforcement(ruleset.enforcement),
            found=True,
            name=ruleset.name,
            ruleset_id=ruleset.id,
            enforcement=ruleset.enforcement,
        )

    def lock(self, options: LockOptions) -> bool:
        """Lock the branch; return whether anything changed."""
        name, existing = self._find(options)
        if existing is None:
            self.repository.create(
                options.owner, options.repo, build_lock_ruleset(name, options.branch)
            )
            return True
        if is_active_enforcement(existing.enforcement):
            logger.info("Ruleset '%s' is already enforced", name)
            return False
        self.repository.update_enforcement(
            options.owner, options.repo, existing.id, "active"
        )
        return True

    def unlock(self, options: LockOptions) -> bool:
        """Unlock the branch; return whether anything changed."""
        name, existing = self._find(options)
        if existing is None:
            logger.info("Ruleset '%s' does not exist, nothing to unlock", name)
            return False
        if not is_active_enforcement(existing.enforcement):
            logger.info("Ruleset '%s' is already %s", name, existing.enforcement)
            return False
        self.repository.update_enforcement(
            options.owner, options.repo, existing.id, "disabled"
        )
        return True
