from logging import Logger
from typing import Any

from fastmcp.exceptions import ToolError
from fastmcp.server import FastMCP
from fastmcp.server.dependencies import get_http_headers, get_http_request
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger

from code_push_mcp.clients.github import RepositoryClient
from code_push_mcp.clients.models.github import AuthContext, Branch, GitReference, PullRequestInfo, RepositoryFileWithContent
from code_push_mcp.config import ConfigurationError, request_config_source, resolve_repository_config
from code_push_mcp.models.changes import BranchActionResult, ConfigSource, DeployMode, ParsedResponse, PushResult, RepositoryConfig
from code_push_mcp.models.repository.tree import DEFAULT_MAX_CONTEXT_FILES, RepositoryTree
from code_push_mcp.parsing.code_blocks import parse_code_blocks
from code_push_mcp.parsing.requests import sanitize_branch_name
from code_push_mcp.publishing.publisher import ClientFactory, RepositoryPublisher
from code_push_mcp.servers.shared.annotations import (
    BASE_BRANCH,
    BRANCH,
    DEPLOY_MODE,
    FILE_CHANGES,
    FROM_BRANCH,
    GET_FILE_PATHS,
    MAX_FILES,
    NEW_BRANCH,
    OWNER,
    PULL_REQUEST_NUMBER,
    REF,
    REPO,
    RESPONSE_TEXT,
    TRUNCATE_CHARACTERS,
    USER_MESSAGE,
)

DEFAULT_TRUNCATE_CHARACTERS = 20000


def current_request_config_source() -> ConfigSource:
    """Read the token from the headers and owner/repo from the query string of the HTTP request being served.

    Outside of an HTTP request (e.g. over stdio) nothing is found and the environment is used instead."""

    headers: dict[str, str] = get_http_headers(include_all=True)

    try:
        query: dict[str, str] = dict(get_http_request().query_params)
    except RuntimeError:
        query = {}

    return request_config_source(headers=headers, query=query)


class PublishServer:
    publisher: RepositoryPublisher
    client_factory: ClientFactory
    logger: Logger

    def __init__(
        self,
        publisher: RepositoryPublisher | None = None,
        client_factory: ClientFactory | None = None,
        logger: Logger | None = None,
    ):
        self.logger = logger or get_logger(name=__name__)
        self.client_factory = client_factory or RepositoryClient.from_config
        self.publisher = publisher or RepositoryPublisher(client_factory=self.client_factory, logger=self.logger)

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.parse_code_blocks))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.publish_changes))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.list_branches))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_file_tree))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_files))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_context_files))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.create_branch))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.create_pull_request))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.merge_branch))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.discard_branch))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.connect))

        return fastmcp

    def _resolve_config(self, owner: str | None, repo: str | None) -> RepositoryConfig:
        try:
            return resolve_repository_config(explicit=ConfigSource(owner=owner, name=repo), request=current_request_config_source())
        except ConfigurationError as e:
            raise ToolError(f"{e} (status {e.status})") from e

    def _client(self, owner: str | None, repo: str | None) -> RepositoryClient:
        return self.client_factory(self._resolve_config(owner=owner, repo=repo))

    async def parse_code_blocks(self, text: RESPONSE_TEXT) -> ParsedResponse:
        """Find the files written in an assistant reply. Every fenced code block with a recognizable file path
        becomes one complete file body; later blocks for the same path replace earlier ones."""

        return parse_code_blocks(text)

    async def publish_changes(
        self,
        user_message: USER_MESSAGE,
        file_changes: FILE_CHANGES,
        deploy_mode: DEPLOY_MODE = DeployMode.SAFE,
        owner: OWNER = None,
        repo: REPO = None,
    ) -> PushResult:
        """Commit file changes to the repository as a single commit, either on a new review branch or directly
        on the trunk branch."""

        config: RepositoryConfig = self._resolve_config(owner=owner, repo=repo)

        return await self.publisher.publish(file_changes=file_changes, deploy_mode=deploy_mode, user_message=user_message, config=config)

    async def list_branches(self, owner: OWNER = None, repo: REPO = None) -> list[Branch]:
        """List the branches of the repository."""

        return await self._client(owner=owner, repo=repo).list_branches()

    async def get_file_tree(self, ref: REF = None, owner: OWNER = None, repo: REPO = None) -> RepositoryTree:
        """Get every file and directory in the repository."""

        return await self._client(owner=owner, repo=repo).get_repository_tree(ref=ref)

    async def get_files(
        self,
        paths: GET_FILE_PATHS,
        ref: REF = None,
        truncate_characters: TRUNCATE_CHARACTERS = DEFAULT_TRUNCATE_CHARACTERS,
        owner: OWNER = None,
        repo: REPO = None,
    ) -> list[RepositoryFileWithContent]:
        """Get the content of files in the repository. Files that do not exist are left out."""

        return await self._client(owner=owner, repo=repo).get_files(paths=paths, ref=ref, truncate_characters=truncate_characters)

    async def get_context_files(
        self,
        ref: REF = None,
        max_files: MAX_FILES = DEFAULT_MAX_CONTEXT_FILES,
        truncate_characters: TRUNCATE_CHARACTERS = DEFAULT_TRUNCATE_CHARACTERS,
        owner: OWNER = None,
        repo: REPO = None,
    ) -> list[RepositoryFileWithContent]:
        """Get the files that best describe the repository, such as the readme and package manifests, followed by
        the shallowest source files. Use them as context before writing code for the repository."""

        return await self._client(owner=owner, repo=repo).get_context_files(
            ref=ref, max_files=max_files, truncate_characters=truncate_characters
        )

    async def create_branch(
        self, branch: NEW_BRANCH, from_branch: FROM_BRANCH = None, owner: OWNER = None, repo: REPO = None
    ) -> GitReference:
        """Create a branch from the tip of another branch."""

        name: str = sanitize_branch_name(branch)

        if not name:
            msg = f"Branch name {branch!r} has no usable characters."
            raise ToolError(msg)

        client: RepositoryClient = self._client(owner=owner, repo=repo)

        return await client.create_branch(name=name, from_branch=from_branch or self.publisher.settings.trunk_branch)

    async def create_pull_request(
        self,
        head: BRANCH,
        title: str | None = None,
        body: str | None = None,
        base: BASE_BRANCH = None,
        owner: OWNER = None,
        repo: REPO = None,
    ) -> PullRequestInfo:
        """Open a pull request for a review branch."""

        client: RepositoryClient = self._client(owner=owner, repo=repo)

        return await client.create_pull_request(
            title=title or f"Merge {head}",
            body=body or "",
            head=head,
            base=base or self.publisher.settings.trunk_branch,
        )

    async def merge_branch(
        self,
        branch: BRANCH,
        base: BASE_BRANCH = None,
        pull_request_number: PULL_REQUEST_NUMBER = None,
        owner: OWNER = None,
        repo: REPO = None,
    ) -> BranchActionResult:
        """Merge a review branch into the trunk branch."""

        config: RepositoryConfig = self._resolve_config(owner=owner, repo=repo)

        return await self.publisher.merge(branch=branch, config=config, base=base, pull_request_number=pull_request_number)

    async def discard_branch(self, branch: BRANCH, owner: OWNER = None, repo: REPO = None) -> BranchActionResult:
        """Delete a review branch without merging it."""

        config: RepositoryConfig = self._resolve_config(owner=owner, repo=repo)

        return await self.publisher.discard(branch=branch, config=config)

    async def connect(self, owner: OWNER = None, repo: REPO = None) -> AuthContext:
        """Check that the configured token can reach the repository and report who it belongs to."""

        return await self._client(owner=owner, repo=repo).get_auth_context()
