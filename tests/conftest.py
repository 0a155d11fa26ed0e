from collections.abc import Sequence
from types import SimpleNamespace
from typing import Any, overload
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastmcp.client.client import CallToolResult
from pydantic import BaseModel

from code_push_mcp.clients.github import RepositoryClient
from code_push_mcp.config import PublisherSettings
from code_push_mcp.models.changes import FileChange, RepositoryConfig

TEST_OWNER = "octo-org"
TEST_REPO = "web-app"
TEST_TOKEN = "ghp_test_token"  # noqa: S105

BASE_SHA = "a" * 40
BASE_TREE_SHA = "b" * 40
NEW_TREE_SHA = "c" * 40
NEW_COMMIT_SHA = "d" * 40


def fake_response(parsed_data: Any = None, status_code: int = 200) -> SimpleNamespace:
    """Stand in for a githubkit `Response`: only `parsed_data` and `status_code` are read."""
    return SimpleNamespace(parsed_data=parsed_data, status_code=status_code)


def fake_git_ref(ref: str, sha: str = BASE_SHA) -> SimpleNamespace:
    return SimpleNamespace(ref=ref, object_=SimpleNamespace(sha=sha, type="commit"))


def fake_githubkit_client() -> MagicMock:
    """A githubkit client whose REST endpoints succeed with plausible data for the repository under test."""

    githubkit_client = MagicMock()

    rest = githubkit_client.rest

    rest.repos.async_get = AsyncMock(
        return_value=fake_response(
            SimpleNamespace(
                name=TEST_REPO,
                full_name=f"{TEST_OWNER}/{TEST_REPO}",
                private=False,
                html_url=f"https://github.com/{TEST_OWNER}/{TEST_REPO}",
                default_branch="main",
            )
        )
    )

    rest.git.async_get_ref = AsyncMock(side_effect=lambda owner, repo, ref: fake_response(fake_git_ref(ref=f"refs/{ref}")))
    rest.git.async_create_ref = AsyncMock(side_effect=lambda owner, repo, ref, sha: fake_response(fake_git_ref(ref=ref, sha=sha)))
    rest.git.async_get_commit = AsyncMock(return_value=fake_response(SimpleNamespace(sha=BASE_SHA, tree=SimpleNamespace(sha=BASE_TREE_SHA))))
    rest.git.async_create_tree = AsyncMock(return_value=fake_response(SimpleNamespace(sha=NEW_TREE_SHA)))
    rest.git.async_create_commit = AsyncMock(
        return_value=fake_response(
            SimpleNamespace(sha=NEW_COMMIT_SHA, html_url=f"https://github.com/{TEST_OWNER}/{TEST_REPO}/commit/{NEW_COMMIT_SHA}")
        )
    )
    rest.git.async_update_ref = AsyncMock(side_effect=lambda owner, repo, ref, sha, force: fake_response(fake_git_ref(ref=f"refs/{ref}", sha=sha)))
    rest.git.async_delete_ref = AsyncMock(return_value=fake_response(status_code=204))

    rest.pulls.async_create = AsyncMock(
        return_value=fake_response(SimpleNamespace(number=7, html_url=f"https://github.com/{TEST_OWNER}/{TEST_REPO}/pull/7"))
    )

    rest.users.async_get_authenticated = AsyncMock(return_value=fake_response(SimpleNamespace(login="octocat")))

    return githubkit_client


@pytest.fixture
def githubkit_client() -> MagicMock:
    return fake_githubkit_client()


@pytest.fixture
def repository_client(githubkit_client: MagicMock) -> RepositoryClient:
    return RepositoryClient(githubkit_client=githubkit_client, owner=TEST_OWNER, repo=TEST_REPO)


@pytest.fixture
def repository_config() -> RepositoryConfig:
    return RepositoryConfig(token=TEST_TOKEN, owner=TEST_OWNER, name=TEST_REPO)


@pytest.fixture
def publisher_settings() -> PublisherSettings:
    return PublisherSettings(trunk_branch="main", auto_create_pull_request=True, railway_project_id=None)


@pytest.fixture
def file_changes() -> list[FileChange]:
    return [
        FileChange(path="src/app/page.tsx", content="export default function Page() {\n  return <h1>Hello</h1>;\n}"),
        FileChange(path="src/lib/math.ts", content="export const add = (a: number, b: number) => a + b;"),
    ]


@pytest.fixture(autouse=True)
def clear_github_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's own GitHub settings out of the tests."""
    for env_var in (
        "GITHUB_TOKEN",
        "GITHUB_PERSONAL_ACCESS_TOKEN",
        "GITHUB_OWNER",
        "GITHUB_REPO",
        "GITHUB_BASE_BRANCH",
        "AUTO_CREATE_PR",
        "RAILWAY_PROJECT_ID",
        "APP_PASSWORD",
    ):
        monkeypatch.delenv(env_var, raising=False)


def handle_exclude_keys(dictionary: dict[str, Any], exclude_keys: list[str] | None = None) -> dict[str, Any]:
    if exclude_keys is None:
        return dictionary
    return {key: value for key, value in dictionary.items() if key not in exclude_keys}


@overload
def dump_for_snapshot(
    basemodel: None,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> None: ...


@overload
def dump_for_snapshot(
    basemodel: BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any]: ...


def dump_for_snapshot(
    basemodel: None | BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any] | None:
    if basemodel is None:
        return None

    return handle_exclude_keys(basemodel.model_dump(exclude_none=exclude_none, **dump_kwargs), exclude_keys)


def dump_list_for_snapshot(
    basemodel: None | Sequence[BaseModel],
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> list[dict[str, Any]] | None:
    if basemodel is None:
        return []

    return [dump_for_snapshot(item, exclude_keys, exclude_none, **dump_kwargs) for item in basemodel]


def dump_structured_content_for_snapshot(call_tool_result: CallToolResult, /) -> Any:
    return call_tool_result.structured_content
