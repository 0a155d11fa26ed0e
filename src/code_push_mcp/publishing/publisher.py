from collections.abc import Callable, Sequence
from logging import Logger

from fastmcp.utilities.logging import get_logger

from code_push_mcp.clients.errors.github import RequestError
from code_push_mcp.clients.github import RepositoryClient
from code_push_mcp.clients.models.github import CommitResult, GitReference, MergeResult, PullRequestInfo
from code_push_mcp.config import PublisherSettings
from code_push_mcp.models.changes import (
    BranchActionResult,
    BranchInfo,
    DeployMode,
    FileChange,
    PublishFailure,
    PushResult,
    RepositoryConfig,
)
from code_push_mcp.parsing.code_blocks import merge_file_changes
from code_push_mcp.parsing.requests import generate_branch_name, sanitize_branch_name
from code_push_mcp.servers.shared.utility import truncate_message

RAILWAY_PREVIEW_URL_TEMPLATE = "https://{repo}-{slug}.up.railway.app"

ClientFactory = Callable[[RepositoryConfig], RepositoryClient]


class PublishError(Exception):
    """A remote call failed part way through a publish. Carries the failure kind and GitHub's message."""

    failure: PublishFailure
    remote_message: str | None

    def __init__(self, failure: PublishFailure, remote_message: str | None = None):
        self.failure = failure
        self.remote_message = remote_message
        super().__init__(remote_message or failure.value)

    @classmethod
    def from_request_error(cls, failure: PublishFailure, request_error: RequestError) -> "PublishError":
        return cls(failure=failure, remote_message=request_error.remote_message)

    def to_push_result(self) -> PushResult:
        return PushResult.failed(failure=self.failure, message=self.remote_message)


def build_preview_url(branch_name: str, repo: str, railway_project_id: str | None) -> str | None:
    """The Railway preview deployment URL for a branch, when preview deployments are configured."""

    if not railway_project_id:
        return None

    return RAILWAY_PREVIEW_URL_TEMPLATE.format(repo=sanitize_branch_name(repo), slug=sanitize_branch_name(branch_name))


def build_pull_request_body(branch_name: str, files_changed: int, user_message: str) -> str:
    return "\n".join(
        [
            "Changes requested via chat.",
            "",
            f"> {truncate_message(user_message, max_length=200)}",
            "",
            f"- Branch: `{branch_name}`",
            f"- Files changed: {files_changed}",
        ]
    )


class RepositoryPublisher:
    settings: PublisherSettings
    client_factory: ClientFactory
    logger: Logger

    def __init__(
        self,
        settings: PublisherSettings | None = None,
        client_factory: ClientFactory | None = None,
        logger: Logger | None = None,
    ):
        self.settings = settings or PublisherSettings.from_env()
        self.client_factory = client_factory or RepositoryClient.from_config
        self.logger = logger or get_logger(name=__name__)

    async def publish(
        self,
        file_changes: Sequence[FileChange],
        deploy_mode: DeployMode,
        user_message: str,
        config: RepositoryConfig | None,
    ) -> PushResult:
        """Land the file changes on GitHub as one commit.

        Safe mode commits to a new branch created from the trunk branch, optionally opening a pull request.
        Direct mode commits straight to the trunk branch. Remote calls are made one after another and the
        first failure ends the attempt; a branch created before the failure is left in place.
        """

        if config is None:
            return PushResult.failed(failure=PublishFailure.NOT_CONFIGURED)

        # Callers may pass paths straight from a model, so they are cleaned up the same way parsed blocks are.
        file_changes = merge_file_changes(file_changes)

        if not file_changes:
            return PushResult.failed(failure=PublishFailure.NO_CHANGES)

        client: RepositoryClient = self.client_factory(config)

        try:
            if deploy_mode == DeployMode.DIRECT:
                branch = await self._publish_direct(client=client, file_changes=file_changes, user_message=user_message)
            else:
                branch = await self._publish_safe(client=client, file_changes=file_changes, user_message=user_message)
        except PublishError as e:
            self.logger.warning(f"Publishing to {config.full_name} failed: {e.failure.value}: {e}")
            return e.to_push_result()

        return PushResult.succeeded(branch=branch)

    async def _publish_safe(self, client: RepositoryClient, file_changes: Sequence[FileChange], user_message: str) -> BranchInfo:
        trunk: str = self.settings.trunk_branch
        branch_name: str = generate_branch_name(user_message)
        message: str = truncate_message(user_message)

        self.logger.info(f"Creating branch {branch_name} from {trunk} in {client.full_name}")

        try:
            branch_ref: GitReference = await client.create_branch(name=branch_name, from_branch=trunk)
        except RequestError as e:
            raise PublishError.from_request_error(failure=PublishFailure.CREATE_BRANCH, request_error=e) from e

        self.logger.info(f"Committing {len(file_changes)} files to {branch_name}")

        try:
            _ = await client.commit(branch=branch_name, files=file_changes, message=message)
        except RequestError as e:
            raise PublishError.from_request_error(failure=PublishFailure.COMMIT, request_error=e) from e

        branch = BranchInfo(
            name=branch_name,
            base_sha=branch_ref.sha,
            files_changed=len(file_changes),
            preview_url=build_preview_url(branch_name=branch_name, repo=client.repo, railway_project_id=self.settings.railway_project_id),
            is_direct=False,
        )

        if not self.settings.auto_create_pull_request:
            return branch

        self.logger.info(f"Opening pull request for {branch_name} into {trunk}")

        try:
            pull_request: PullRequestInfo = await client.create_pull_request(
                title=message,
                body=build_pull_request_body(branch_name=branch_name, files_changed=len(file_changes), user_message=user_message),
                head=branch_name,
                base=trunk,
            )
        except RequestError as e:
            raise PublishError.from_request_error(failure=PublishFailure.CREATE_PULL_REQUEST, request_error=e) from e

        return branch.model_copy(update={"pull_request_number": pull_request.number, "pull_request_url": pull_request.url})

    async def _publish_direct(self, client: RepositoryClient, file_changes: Sequence[FileChange], user_message: str) -> BranchInfo:
        trunk: str = self.settings.trunk_branch

        self.logger.info(f"Committing {len(file_changes)} files directly to {trunk} in {client.full_name}")

        try:
            commit: CommitResult = await client.commit(branch=trunk, files=file_changes, message=truncate_message(user_message))
        except RequestError as e:
            raise PublishError.from_request_error(failure=PublishFailure.COMMIT_TO_TRUNK, request_error=e) from e

        return BranchInfo(name=trunk, base_sha=commit.parent_sha, files_changed=len(file_changes), is_direct=True)

    async def merge(
        self, branch: str, config: RepositoryConfig | None, base: str | None = None, pull_request_number: int | None = None
    ) -> BranchActionResult:
        """Merge a review branch into the trunk branch (or `base`). When the branch has an open pull request,
        pass its number to merge through the pull request instead."""

        if config is None:
            return BranchActionResult(success=False, branch=branch, error=PublishFailure.NOT_CONFIGURED.value, failure=PublishFailure.NOT_CONFIGURED)

        base = base or self.settings.trunk_branch
        client: RepositoryClient = self.client_factory(config)

        try:
            if pull_request_number is not None:
                self.logger.info(f"Merging pull request #{pull_request_number} for {branch} in {config.full_name}")
                merge_result: MergeResult = await client.merge_pull_request(pull_request_number=pull_request_number)
            else:
                self.logger.info(f"Merging {branch} into {base} in {config.full_name}")
                merge_result = await client.merge_branch(base=base, head=branch)
        except RequestError as e:
            self.logger.warning(f"Merging {branch} into {base} failed: {e}")
            return BranchActionResult(
                success=False, branch=branch, error=e.remote_message or PublishFailure.MERGE.value, failure=PublishFailure.MERGE
            )

        return BranchActionResult(success=True, branch=branch, sha=merge_result.sha, message=merge_result.message)

    async def discard(self, branch: str, config: RepositoryConfig | None) -> BranchActionResult:
        """Delete a review branch without merging it."""

        if config is None:
            return BranchActionResult(success=False, branch=branch, error=PublishFailure.NOT_CONFIGURED.value, failure=PublishFailure.NOT_CONFIGURED)

        client: RepositoryClient = self.client_factory(config)

        self.logger.info(f"Deleting {branch} in {config.full_name}")

        try:
            await client.delete_branch(name=branch)
        except RequestError as e:
            self.logger.warning(f"Deleting {branch} failed: {e}")
            return BranchActionResult(
                success=False, branch=branch, error=e.remote_message or PublishFailure.DISCARD.value, failure=PublishFailure.DISCARD
            )

        return BranchActionResult(success=True, branch=branch, message=f"Deleted {branch}")
