import asyncio
from collections.abc import Awaitable, Callable, Sequence
from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, Literal, Self, TypeVar, overload

from githubkit import GitHub as GitHubKit
from githubkit.auth.token import TokenAuthStrategy
from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.exception import RequestFailed as GitHubKitRequestFailed
from githubkit.response import Response as GitHubKitResponse
from githubkit.retry import RetryChainDecision, RetryRateLimit, RetryServerError
from githubkit.versions.v2022_11_28.models import ContentFile as GitHubKitContentFile

from code_push_mcp.clients.errors.github import RequestError, ResourceNotFoundError, ResourceTypeMismatchError
from code_push_mcp.clients.models.github import (
    AuthContext,
    Branch,
    CommitResult,
    GitReference,
    MergeResult,
    PullRequestInfo,
    Repository,
    RepositoryFileWithContent,
)
from code_push_mcp.models.changes import FileAction, FileChange, RepositoryConfig
from code_push_mcp.models.repository.tree import DEFAULT_MAX_CONTEXT_FILE_SIZE, DEFAULT_MAX_CONTEXT_FILES, RepositoryTree
from code_push_mcp.servers.shared.utility import GITHUBKIT_RESPONSE_TYPE, extract_response

if TYPE_CHECKING:
    from types import CoroutineType

    from githubkit.versions.v2022_11_28.models import GitCommit as GitHubKitGitCommit
    from githubkit.versions.v2022_11_28.models import GitRef as GitHubKitGitRef
    from githubkit.versions.v2022_11_28.models import GitTree as GitHubKitGitTree

NOT_FOUND_ERROR = 404
NO_CONTENT = 204

FILE_MODE = "100644"

T = TypeVar("T")
ResponseT = TypeVar("ResponseT", bound=GITHUBKIT_RESPONSE_TYPE)

DEFAULT_TRUNCATE_CHARACTERS = 20000
DEFAULT_MAX_FILES = 20
DEFAULT_LIST_BRANCHES_PER_PAGE = 100


def get_githubkit_client(token: str) -> GitHubKit[Any]:
    # Retry server errors up to 3 times
    retry_server_error = RetryServerError()

    # Retry rate limit errors up to 3 times
    retry_rate_limit = RetryRateLimit(max_retry=3)

    retry_chain = RetryChainDecision(
        retry_server_error,
        retry_rate_limit,
    )

    return GitHubKit[TokenAuthStrategy](auth=TokenAuthStrategy(token=token), auto_retry=retry_chain)


def get_remote_message(error: GitHubKitGitHubException) -> str | None:
    """Return the `message` GitHub put in the error response body, if there is one."""

    if not isinstance(error, GitHubKitRequestFailed):
        return str(error) or None

    try:
        body: Any = error.response.raw_response.json()  # pyright: ignore[reportAny]
    except ValueError:
        return None

    if isinstance(body, dict) and isinstance(message := body.get("message"), str):  # pyright: ignore[reportUnknownMemberType]
        return message

    return None


def to_tree_entry(file_change: FileChange) -> dict[str, Any]:
    """Inline a file change into a git tree entry so the whole change set is sent in one tree creation call."""

    if file_change.action == FileAction.DELETE:
        return {"path": file_change.path, "mode": FILE_MODE, "type": "blob", "sha": None}

    return {"path": file_change.path, "mode": FILE_MODE, "type": "blob", "content": file_change.content}


class RepositoryClient:
    githubkit_client: GitHubKit[Any]
    owner: str
    repo: str
    logger: Logger

    log_requests: bool
    log_responses: bool
    log_on_error: bool

    def __init__(
        self,
        githubkit_client: GitHubKit[Any],
        owner: str,
        repo: str,
        logger: Logger | None = None,
        log_requests: bool = True,
        log_responses: bool = False,
        log_on_error: bool = True,
    ):
        self.githubkit_client = githubkit_client
        self.owner = owner
        self.repo = repo
        self.logger = logger or getLogger(__name__)
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.log_on_error = log_on_error

    @classmethod
    def from_config(cls, config: RepositoryConfig, logger: Logger | None = None) -> Self:
        return cls(githubkit_client=get_githubkit_client(token=config.token), owner=config.owner, repo=config.name, logger=logger)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _get_loggers(
        self, log_request: bool | None = None, log_response: bool | None = None, log_on_error: bool | None = None
    ) -> tuple[Callable[[str], Any], Callable[[str], Any], Callable[[BaseException | str], Any]]:
        # An explicit per-call setting overrides the client default in both directions.
        log_request = self.log_requests if log_request is None else log_request
        log_response = self.log_responses if log_response is None else log_response
        log_on_error = self.log_on_error if log_on_error is None else log_on_error

        request_logger = self.logger.info if log_request else self.logger.debug
        response_logger = self.logger.info if log_response else self.logger.debug
        error_logger = self.logger.exception if log_on_error else self.logger.debug
        return request_logger, response_logger, error_logger

    @overload
    async def _perform_rest_call(
        self,
        action: str,
        log_request: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: Literal[True] = True,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> GitHubKitResponse[T]: ...

    @overload
    async def _perform_rest_call(
        self,
        action: str,
        log_request: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: Literal[False] = False,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> GitHubKitResponse[T] | None: ...

    async def _perform_rest_call(
        self,
        action: str,
        log_request: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: bool = True,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> GitHubKitResponse[T] | None:
        """Perform a request against the repository and return the raw response.

        Args:
            action: The action being performed.
            log_request: Whether to log the request.
            log_on_error: Whether to log on error.
            error_on_not_found: Whether to raise an error if the resource is not found.

        Raises:
            ResourceNotFoundError: If the resource is not found and error_on_not_found is True.
            RequestError: If the request fails.
        """

        request_logger, _, error_logger = self._get_loggers(log_request=log_request, log_on_error=log_on_error)

        request_logger(f"Performing {action} on {self.full_name} with kwargs {request_args}")

        try:
            return await method(owner=self.owner, repo=self.repo, **request_args)
        except GitHubKitRequestFailed as e:
            if e.response.status_code == NOT_FOUND_ERROR:
                if error_on_not_found:
                    raise ResourceNotFoundError(action=action, resource=e.request.url.path) from e

                return None

            error_logger(f"RequestFailed error performing {action} on {self.full_name}: {e}")

            raise RequestError(action=action, message=str(e), remote_message=get_remote_message(e)) from e
        except GitHubKitGitHubException as e:
            error_logger(f"Error performing {action} on {self.full_name}: {e}")

            raise RequestError(action=action, message=str(e), remote_message=get_remote_message(e)) from e

    @overload
    async def _perform_rest_request(
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: Literal[True] = True,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[ResponseT]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> ResponseT: ...

    @overload
    async def _perform_rest_request(
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: Literal[False] = False,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[ResponseT]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> ResponseT | None: ...

    async def _perform_rest_request(
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: bool = True,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[ResponseT]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> ResponseT | None:
        """Perform a request and extract the parsed response."""

        _, response_logger, _ = self._get_loggers(log_response=log_response)

        response = await self._perform_rest_call(
            action,
            log_request=log_request,
            log_on_error=log_on_error,
            error_on_not_found=error_on_not_found,
            method=method,
            **request_args,
        )

        if response is None:
            return None

        extracted_response = extract_response(response)

        response_logger(f"Extracted response for {action} on {self.full_name}: {extracted_response}")

        return extracted_response

    def _remove_none(self, results: Sequence[T | None], /) -> list[T]:
        return [result for result in results if result is not None]

    # Read operations

    async def get_repository(self) -> Repository:
        """Get the repository."""

        full_repository = await self._perform_rest_request(
            action="Get repository",
            method=self.githubkit_client.rest.repos.async_get,
        )

        return Repository.from_full_repository(full_repository=full_repository)

    async def get_default_branch(self) -> str:
        """Get the default branch of the repository."""

        repository: Repository = await self.get_repository()

        return repository.default_branch

    async def list_branches(self) -> list[Branch]:
        """List the branches of the repository, marking the default branch."""

        default_branch: str = await self.get_default_branch()

        short_branches = await self._perform_rest_request(
            action="List branches",
            method=self.githubkit_client.rest.repos.async_list_branches,
            per_page=DEFAULT_LIST_BRANCHES_PER_PAGE,
        )

        return [Branch.from_short_branch(short_branch=short_branch, default_branch=default_branch) for short_branch in short_branches]

    @overload
    async def get_git_ref(self, ref: str, error_on_not_found: Literal[True] = True) -> GitReference: ...

    @overload
    async def get_git_ref(self, ref: str, error_on_not_found: Literal[False] = False) -> GitReference | None: ...

    async def get_git_ref(self, ref: str, error_on_not_found: bool = True) -> GitReference | None:
        """Get details about a git ref from the repository.

        Args:
            ref: The ref to look up, e.g. `heads/main`.
            error_on_not_found: Whether to raise an error if the ref is not found.
        """

        if git_ref := await self._perform_rest_request(
            action="Get git ref",
            error_on_not_found=error_on_not_found,
            method=self.githubkit_client.rest.git.async_get_ref,
            ref=ref,
        ):
            return GitReference.from_git_ref(git_ref=git_ref)

        return None

    async def get_repository_tree(self, ref: str | None = None) -> RepositoryTree:
        """Get the full recursive tree of a branch.

        Args:
            ref: The branch, tag or SHA to get the tree of. If not provided, the default branch will be used.
        """

        if ref is None:
            ref = await self.get_default_branch()

        tree: GitHubKitGitTree = await self._perform_rest_request(
            action="Get repository tree",
            method=self.githubkit_client.rest.git.async_get_tree,
            tree_sha=ref,
            recursive="1",
        )

        return RepositoryTree.from_git_tree(git_tree=tree)

    async def get_file(
        self, path: str, ref: str | None = None, truncate_characters: int = DEFAULT_TRUNCATE_CHARACTERS
    ) -> RepositoryFileWithContent | None:
        """Get a file from the repository, or None if it does not exist.

        Args:
            path: The path of the file.
            ref: The branch, tag or SHA to read the file from. If not provided, the default branch will be used.
            truncate_characters: The number of characters to truncate the file to.
        """

        request_args: dict[str, Any] = {"path": path}
        if ref is not None:
            request_args["ref"] = ref

        if file := await self._perform_rest_request(
            action="Get file",
            error_on_not_found=False,
            method=self.githubkit_client.rest.repos.async_get_content,
            **request_args,
        ):
            if not isinstance(file, GitHubKitContentFile):
                raise ResourceTypeMismatchError(action="Get file", resource=path, expected_type=GitHubKitContentFile, actual_type=type(file))

            return RepositoryFileWithContent.from_content_file(content_file=file, truncate_characters=truncate_characters)

        return None

    async def get_files(
        self,
        paths: Sequence[str],
        ref: str | None = None,
        max_files: int = DEFAULT_MAX_FILES,
        truncate_characters: int = DEFAULT_TRUNCATE_CHARACTERS,
    ) -> list[RepositoryFileWithContent]:
        """Get multiple files from the repository. Missing files are left out.

        Args:
            paths: The paths of the files, in priority order.
            ref: The branch, tag or SHA to read the files from. If not provided, the default branch will be used.
            max_files: The maximum number of files to fetch. Paths past this count are ignored.
            truncate_characters: The number of characters to truncate each file to.
        """

        if not paths:
            return []

        tasks: list[CoroutineType[Any, Any, RepositoryFileWithContent | None]] = [
            self.get_file(path=path, ref=ref, truncate_characters=truncate_characters) for path in paths[:max_files]
        ]

        results: list[RepositoryFileWithContent | None] = await asyncio.gather(*tasks)

        return self._remove_none(results)

    async def get_context_files(
        self,
        ref: str | None = None,
        max_files: int = DEFAULT_MAX_CONTEXT_FILES,
        max_file_size: int = DEFAULT_MAX_CONTEXT_FILE_SIZE,
        truncate_characters: int = DEFAULT_TRUNCATE_CHARACTERS,
    ) -> list[RepositoryFileWithContent]:
        """Get the files most useful as model context: project manifests and readmes first, then the shallowest files."""

        if ref is None:
            ref = await self.get_default_branch()

        repository_tree: RepositoryTree = await self.get_repository_tree(ref=ref)

        paths: list[str] = repository_tree.select_context_files(max_files=max_files, max_file_size=max_file_size)

        return await self.get_files(paths=paths, ref=ref, max_files=max_files, truncate_characters=truncate_characters)

    async def get_auth_context(self) -> AuthContext:
        """Check the token by looking up the authenticated user and the repository."""

        user = await self._perform_rest_request(
            action="Get authenticated user",
            method=self._without_repository(self.githubkit_client.rest.users.async_get_authenticated),
        )

        repository: Repository = await self.get_repository()

        return AuthContext(login=user.login, repository=repository.full_name, default_branch=repository.default_branch)

    # Write operations

    async def create_branch(self, name: str, from_branch: str) -> GitReference:
        """Create a branch pointing at the current tip of another branch."""

        base_ref: GitReference = await self.get_git_ref(ref=f"heads/{from_branch}")

        created_ref: GitHubKitGitRef = await self._perform_rest_request(
            action="Create branch",
            method=self.githubkit_client.rest.git.async_create_ref,
            ref=f"refs/heads/{name}",
            sha=base_ref.sha,
        )

        return GitReference.from_git_ref(git_ref=created_ref)

    async def commit(self, branch: str, files: Sequence[FileChange], message: str) -> CommitResult:
        """Add one commit containing every file change to the tip of a branch.

        All files are sent inline in a single tree creation call, so the commit lands whole or not at all."""

        base_ref: GitReference = await self.get_git_ref(ref=f"heads/{branch}")

        base_commit: GitHubKitGitCommit = await self._perform_rest_request(
            action="Get commit",
            method=self.githubkit_client.rest.git.async_get_commit,
            commit_sha=base_ref.sha,
        )

        tree: GitHubKitGitTree = await self._perform_rest_request(
            action="Create tree",
            log_request=False,
            method=self.githubkit_client.rest.git.async_create_tree,
            base_tree=base_commit.tree.sha,
            tree=[to_tree_entry(file_change) for file_change in files],
        )

        new_commit: GitHubKitGitCommit = await self._perform_rest_request(
            action="Create commit",
            method=self.githubkit_client.rest.git.async_create_commit,
            message=message,
            tree=tree.sha,
            parents=[base_ref.sha],
        )

        _ = await self._perform_rest_request(
            action="Update branch",
            method=self.githubkit_client.rest.git.async_update_ref,
            ref=f"heads/{branch}",
            sha=new_commit.sha,
            force=False,
        )

        return CommitResult.from_git_commit(git_commit=new_commit, branch=branch, parent_sha=base_ref.sha)

    async def create_pull_request(self, title: str, body: str, head: str, base: str) -> PullRequestInfo:
        """Open a pull request from `head` into `base`."""

        pull_request = await self._perform_rest_request(
            action="Create pull request",
            method=self.githubkit_client.rest.pulls.async_create,
            title=title,
            body=body,
            head=head,
            base=base,
        )

        return PullRequestInfo.from_pull_request(pull_request=pull_request)

    async def merge_branch(self, base: str, head: str, commit_message: str | None = None) -> MergeResult:
        """Merge `head` into `base`. Reports `merged=False` when `base` already contains `head`."""

        request_args: dict[str, Any] = {"base": base, "head": head}
        if commit_message:
            request_args["commit_message"] = commit_message

        response = await self._perform_rest_call(
            action="Merge branch",
            method=self.githubkit_client.rest.repos.async_merge,
            **request_args,
        )

        if response.status_code == NO_CONTENT:
            return MergeResult(merged=False, message=f"{base} already contains {head}")

        merge_commit = extract_response(response)

        return MergeResult(merged=True, sha=merge_commit.sha, message=f"Merged {head} into {base}")

    async def merge_pull_request(self, pull_request_number: int) -> MergeResult:
        """Merge an open pull request."""

        merge_result = await self._perform_rest_request(
            action="Merge pull request",
            method=self.githubkit_client.rest.pulls.async_merge,
            pull_number=pull_request_number,
        )

        return MergeResult(merged=merge_result.merged, sha=merge_result.sha, message=merge_result.message)

    async def delete_branch(self, name: str) -> None:
        """Delete a branch."""

        _ = await self._perform_rest_call(
            action="Delete branch",
            method=self.githubkit_client.rest.git.async_delete_ref,
            ref=f"heads/{name}",
        )

    def _without_repository(self, method: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Adapt a user-scoped endpoint to the owner/repo arguments every call receives."""

        async def call(owner: str, repo: str, **request_args: Any) -> T:  # pyright: ignore[reportAny]
            return await method(**request_args)

        return call
