"""Lock and unlock GitHub branches through repository rulesets."""

__version__ = "0.1.0"

from .auth import CredentialProvider, RSASigner, Signer, build_app_jwt
from .client import GitHubClient
from .config import Settings
from .errors import (
    AuthError,
    ConfigurationError,
    GitHubAPIError,
    MergeLockError,
    RepositoryNotFoundError,
)
from .rulesets import (
    LockController,
    LockOptions,
    RulesetRepository,
    RulesetStatusResult,
    RulesetSummary,
    resolve_ruleset_name,
)

__all__ = [
    "AuthError",
    "ConfigurationError",
    "CredentialProvider",
    "GitHubAPIError",
    "GitHubClient",
    "LockController",
    "LockOptions",
    "MergeLockError",
    "RSASigner",
    "RepositoryNotFoundError",
    "RulesetRepository",
    "RulesetStatusResult",
    "RulesetSummary",
    "Settings",
    "Signer",
    "build_app_jwt",
    "resolve_ruleset_name",
]
