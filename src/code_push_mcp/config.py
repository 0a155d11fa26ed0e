import os
from collections.abc import Mapping
from typing import TypeVar

from pydantic import BaseModel, Field

from code_push_mcp.models.changes import ConfigSource, RepositoryConfig

BAD_REQUEST = 400
UNAUTHORIZED = 401

TOKEN_ENV_VARS: tuple[str, ...] = ("GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN")
TOKEN_HEADERS: tuple[str, ...] = ("x-github-token", "github-token")

T = TypeVar("T")

TRUTHY_VALUES: frozenset[str] = frozenset({"1", "true", "yes", "on"})


class ConfigurationError(Exception):
    """The repository credentials or identity could not be resolved. Raised before any remote call."""

    status: int

    def __init__(self, message: str, status: int = BAD_REQUEST):
        self.status = status
        super().__init__(message)


def first_present(*values: T | None) -> T | None:
    """Return the first value that is not None or empty."""
    for value in values:
        if value:
            return value
    return None


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None

    scheme, _, credentials = authorization.strip().partition(" ")

    if scheme.lower() in {"bearer", "token"} and credentials.strip():
        return credentials.strip()

    return None


def request_config_source(headers: Mapping[str, str] | None = None, query: Mapping[str, str] | None = None) -> ConfigSource:
    """Read repository configuration scoped to a single incoming request.

    The token comes from an `Authorization: Bearer <token>` or `Authorization: token <token>` header, then
    the `x-github-token` and `github-token` headers. Owner and repo come from the query string."""

    lowered_headers: dict[str, str] = {key.lower(): value for key, value in (headers or {}).items()}
    query = query or {}

    token = first_present(
        _bearer_token(lowered_headers.get("authorization")),
        *[lowered_headers.get(header) for header in TOKEN_HEADERS],
    )

    return ConfigSource(token=token, owner=query.get("owner"), name=query.get("repo"))


def environment_config_source() -> ConfigSource:
    """Read the process-wide default repository configuration from the environment."""

    return ConfigSource(
        token=first_present(*[os.getenv(env_var) for env_var in TOKEN_ENV_VARS]),
        owner=os.getenv("GITHUB_OWNER"),
        name=os.getenv("GITHUB_REPO"),
    )


def resolve_repository_config(
    explicit: ConfigSource | None = None,
    request: ConfigSource | None = None,
    environment: ConfigSource | None = None,
) -> RepositoryConfig:
    """Resolve each setting from the explicit value, then the request, then the environment.

    Resolved fresh for every request since tokens differ between callers.

    Raises:
        ConfigurationError: If no token (401) or no owner/repo (400) could be found.
    """

    explicit = explicit or ConfigSource()
    request = request or ConfigSource()
    environment = environment or environment_config_source()

    token = first_present(explicit.token, request.token, environment.token)
    owner = first_present(explicit.owner, request.owner, environment.owner)
    name = first_present(explicit.name, request.name, environment.name)

    if not token:
        msg = "Missing GitHub token. Provide it via Authorization header, x-github-token, or env GITHUB_TOKEN."
        raise ConfigurationError(msg, status=UNAUTHORIZED)

    if not owner or not name:
        msg = "Missing GitHub repository information. Provide owner and repo in the request or env variables."
        raise ConfigurationError(msg, status=BAD_REQUEST)

    return RepositoryConfig(token=token, owner=owner, name=name)


def _env_flag(name: str, default: bool) -> bool:
    if (value := os.getenv(name)) is None:
        return default
    return value.strip().lower() in TRUTHY_VALUES


class PublisherSettings(BaseModel):
    """Process-wide publishing behavior."""

    trunk_branch: str = Field(default="main", description="The branch review branches are created from and direct commits land on.")
    auto_create_pull_request: bool = Field(default=True, description="Whether to open a pull request for each review branch.")
    railway_project_id: str | None = Field(default=None, description="The Railway project that builds preview deployments.")

    @classmethod
    def from_env(cls) -> "PublisherSettings":
        return cls(
            trunk_branch=os.getenv("GITHUB_BASE_BRANCH") or "main",
            auto_create_pull_request=_env_flag("AUTO_CREATE_PR", default=True),
            railway_project_id=os.getenv("RAILWAY_PROJECT_ID") or None,
        )
