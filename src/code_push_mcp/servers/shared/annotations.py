from typing import Annotated

from pydantic import Field

from code_push_mcp.models.changes import DeployMode, FileChange

OWNER_DESCRIPTION = "The owner of the repository. If not provided, it is read from the request or the GITHUB_OWNER env variable."
OWNER = Annotated[str | None, Field(description=OWNER_DESCRIPTION)]

REPO_DESCRIPTION = "The name of the repository. If not provided, it is read from the request or the GITHUB_REPO env variable."
REPO = Annotated[str | None, Field(description=REPO_DESCRIPTION)]

REF_DESCRIPTION = "The branch, tag or SHA to read from. If not provided, the default branch will be used."
REF = Annotated[str | None, Field(description=REF_DESCRIPTION)]

BRANCH = Annotated[str, Field(description="The name of the branch.")]
BASE_BRANCH = Annotated[
    str | None, Field(description="The branch to merge into. If not provided, the configured trunk branch will be used.")
]

RESPONSE_TEXT = Annotated[str, Field(description="The full text of an assistant reply containing fenced code blocks.")]
USER_MESSAGE = Annotated[str, Field(description="The user's request. Used for the branch name, commit message and pull request title.")]
FILE_CHANGES = Annotated[list[FileChange], Field(description="The complete file bodies to commit, one per path.")]
DEPLOY_MODE = Annotated[
    DeployMode,
    Field(description="`safe` commits to a new review branch and opens a pull request. `direct` commits straight to the trunk branch."),
]

GET_FILE_PATHS = Annotated[
    list[str],
    Field(description="The paths of the files in the repository to get the content of. For example, 'README.md' or 'path/to/file.txt'."),
]

TRUNCATE_CHARACTERS_DESCRIPTION = "The number of characters to truncate the content of the files to."
TRUNCATE_CHARACTERS = Annotated[int, Field(description=TRUNCATE_CHARACTERS_DESCRIPTION)]

PULL_REQUEST_NUMBER = Annotated[int | None, Field(description="The number of the pull request to merge the branch through.")]

NEW_BRANCH = Annotated[str, Field(description="The name of the branch to create. It is reduced to lowercase letters, digits and dashes.")]
FROM_BRANCH = Annotated[
    str | None, Field(description="The branch to start the new branch from. If not provided, the configured trunk branch will be used.")
]

MAX_FILES = Annotated[int, Field(description="The maximum number of files to return.")]
