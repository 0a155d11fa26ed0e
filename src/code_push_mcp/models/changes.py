from datetime import UTC, datetime
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field


class FileAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class DeployMode(StrEnum):
    """How published changes reach the repository."""

    SAFE = "safe"
    DIRECT = "direct"


class PublishFailure(StrEnum):
    """The reasons a publish attempt can fail. The value doubles as the fallback message shown to the user."""

    NOT_CONFIGURED = "GitHub not configured"
    NO_CHANGES = "No file changes to publish"
    CREATE_BRANCH = "Failed to create branch"
    COMMIT = "Failed to commit"
    COMMIT_TO_TRUNK = "Failed to commit to main"
    CREATE_PULL_REQUEST = "Failed to create PR"
    MERGE = "Failed to merge branch"
    DISCARD = "Failed to delete branch"


class FileChange(BaseModel):
    """A complete desired file body for a path in the repository."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="The repository-relative path of the file.")
    content: str = Field(description="The full content of the file, never a patch.")
    action: FileAction = Field(default=FileAction.UPDATE, description="What to do with the file.")


class ParsedResponse(BaseModel):
    """The file changes found in one completed assistant reply."""

    model_config = ConfigDict(frozen=True)

    raw_text: str = Field(description="The full text of the reply.")
    file_changes: tuple[FileChange, ...] = Field(default=(), description="One change per path, in first-seen order.")

    @property
    def has_changes(self) -> bool:
        return len(self.file_changes) > 0

    @property
    def paths(self) -> list[str]:
        return [file_change.path for file_change in self.file_changes]


class BranchInfo(BaseModel):
    """The outcome of a publish: where the changes landed."""

    name: str = Field(description="The name of the branch the changes were committed to.")
    base_sha: str | None = Field(default=None, description="The SHA the branch was created from.")
    files_changed: int = Field(description="The number of files in the commit.")
    preview_url: str | None = Field(default=None, description="The preview deployment URL for the branch, if any.")
    pull_request_number: int | None = Field(default=None, description="The number of the pull request opened for the branch.")
    pull_request_url: str | None = Field(default=None, description="The URL of the pull request opened for the branch.")
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC), description="When the changes were published.")
    is_direct: bool = Field(default=False, description="Whether the changes were committed straight to the trunk branch.")


class PushResult(BaseModel):
    """The result of a publish attempt. `branch` is set on success, `error` on failure."""

    success: bool
    branch: BranchInfo | None = None
    error: str | None = None
    failure: PublishFailure | None = None

    @classmethod
    def succeeded(cls, branch: BranchInfo) -> Self:
        return cls(success=True, branch=branch)

    @classmethod
    def failed(cls, failure: PublishFailure, message: str | None = None) -> Self:
        return cls(success=False, error=message or failure.value, failure=failure)


class BranchActionResult(BaseModel):
    """The result of merging or discarding a review branch."""

    success: bool
    branch: str = Field(description="The branch that was merged or discarded.")
    sha: str | None = Field(default=None, description="The SHA of the merge commit, if one was created.")
    message: str | None = Field(default=None, description="A message describing the outcome.")
    error: str | None = None
    failure: PublishFailure | None = None


class ConfigSource(BaseModel):
    """One layer of repository configuration. Any field may be missing."""

    token: str | None = None
    owner: str | None = None
    name: str | None = None


class RepositoryConfig(BaseModel):
    """Resolved credentials and identity of the repository to publish to."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(repr=False)
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"
