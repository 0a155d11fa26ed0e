from typing import Self

from githubkit.versions.v2022_11_28.models import (
    ContentFile as GitHubKitContentFile,
)
from githubkit.versions.v2022_11_28.models import (
    FullRepository as GitHubKitFullRepository,
)
from githubkit.versions.v2022_11_28.models import GitCommit as GitHubKitGitCommit
from githubkit.versions.v2022_11_28.models import (
    GitRef as GitHubKitGitRef,
)
from githubkit.versions.v2022_11_28.models import PullRequest as GitHubKitPullRequest
from githubkit.versions.v2022_11_28.models import ShortBranch as GitHubKitShortBranch
from pydantic import BaseModel, ConfigDict, Field

from code_push_mcp.servers.shared.utility import decode_content

DEFAULT_TRUNCATE_CONTENT_CHARACTERS = 20000


class Repository(BaseModel):
    """A repository."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(description="The name of the repository.")
    full_name: str = Field(description="The owner and name of the repository.")
    private: bool = Field(description="Whether the repository is private.")
    url: str = Field(description="The URL of the repository.")
    default_branch: str = Field(description="The default branch of the repository.")

    @classmethod
    def from_full_repository(cls, full_repository: GitHubKitFullRepository) -> Self:
        return cls(
            name=full_repository.name,
            full_name=full_repository.full_name,
            private=full_repository.private,
            url=full_repository.html_url,
            default_branch=full_repository.default_branch,
        )


class Branch(BaseModel):
    """A branch of the repository."""

    name: str = Field(description="The name of the branch.")
    sha: str = Field(description="The SHA of the commit at the tip of the branch.")
    is_default: bool = Field(default=False, description="Whether this is the default branch of the repository.")

    @classmethod
    def from_short_branch(cls, short_branch: GitHubKitShortBranch, default_branch: str) -> Self:
        return cls(name=short_branch.name, sha=short_branch.commit.sha, is_default=short_branch.name == default_branch)


class GitReference(BaseModel):
    """A git reference."""

    name: str = Field(description="The name of the reference.")
    sha: str = Field(description="The SHA of the reference.")
    ref_type: str = Field(description="The type of the reference.")

    @classmethod
    def from_git_ref(cls, git_ref: GitHubKitGitRef) -> Self:
        return cls(name=git_ref.ref, sha=git_ref.object_.sha, ref_type=git_ref.object_.type)


class CommitResult(BaseModel):
    """A commit created on a branch."""

    sha: str = Field(description="The SHA of the new commit.")
    branch: str = Field(description="The branch the commit was added to.")
    parent_sha: str = Field(description="The SHA of the commit the new commit is based on.")
    url: str | None = Field(default=None, description="The URL of the commit.")

    @classmethod
    def from_git_commit(cls, git_commit: GitHubKitGitCommit, branch: str, parent_sha: str) -> Self:
        return cls(sha=git_commit.sha, branch=branch, parent_sha=parent_sha, url=git_commit.html_url)


class PullRequestInfo(BaseModel):
    """A pull request opened for a branch."""

    number: int = Field(description="The number of the pull request.")
    url: str = Field(description="The URL of the pull request.")

    @classmethod
    def from_pull_request(cls, pull_request: GitHubKitPullRequest) -> Self:
        return cls(number=pull_request.number, url=pull_request.html_url)


class MergeResult(BaseModel):
    """The outcome of merging one branch (or pull request) into another."""

    merged: bool = Field(description="Whether a merge commit was created.")
    sha: str | None = Field(default=None, description="The SHA of the merge commit.")
    message: str | None = Field(default=None, description="A message describing the outcome.")


class AuthContext(BaseModel):
    """Who the token belongs to and which repository it is used with."""

    login: str = Field(description="The login of the authenticated user.")
    repository: str = Field(description="The owner and name of the repository.")
    default_branch: str = Field(description="The default branch of the repository.")


class RepositoryFileWithContent(BaseModel):
    """A file with its path and content."""

    path: str = Field(description="The path of the file.")
    content: str = Field(description="The content of the file.")
    size: int = Field(description="The size of the file in bytes.")
    truncated: bool = Field(default=False, description="Whether the content has been truncated.")

    @classmethod
    def from_content_file(cls, content_file: GitHubKitContentFile, truncate_characters: int = DEFAULT_TRUNCATE_CONTENT_CHARACTERS) -> Self:
        decoded_content = decode_content(content_file.content)

        return cls(path=content_file.path, content=decoded_content, size=content_file.size).truncate(
            truncate_characters=truncate_characters
        )

    def truncate(self, truncate_characters: int) -> Self:
        if len(self.content) <= truncate_characters:
            return self

        return self.model_copy(update={"content": self.content[:truncate_characters], "truncated": True})
