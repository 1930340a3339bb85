"""Run configuration: one immutable record built at process start."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dulwich.refs import check_ref_format

from .exceptions import ConfigError, PreconditionError
from .remote import Credential

DEFAULT_COMMIT_USERNAME = "github-actions[bot]"
DEFAULT_COMMIT_EMAIL = "github-actions[bot]@users.noreply.github.com"
DEFAULT_COMMIT_MESSAGE = "chore: update branch from directory"
DEFAULT_SERVER_URL = "https://github.com"
DEFAULT_CLONE_DEPTH = 1


@dataclass(frozen=True)
class Config:
    """Everything a publish run needs.

    Args:
        branch: Target branch name (without ``refs/heads/``).
        folder: Local directory whose contents become the branch content.
        repository: ``owner/name`` of the target repository.  When None,
            *current_repository* is used instead.
        current_repository: The repository the run executes in, used as
            the fallback for *repository*.
        token: Token used for both clone and push.
        server_url: Base URL of the git host.
        clone_depth: History depth of the initial clone; 0 clones everything.
    """

    branch: str
    folder: str | Path
    repository: str | None = None
    commit_username: str = DEFAULT_COMMIT_USERNAME
    commit_email: str = DEFAULT_COMMIT_EMAIL
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    token: str | None = None
    current_repository: str | None = None
    server_url: str = DEFAULT_SERVER_URL
    clone_depth: int = DEFAULT_CLONE_DEPTH

    def __repr__(self) -> str:
        return (
            f"Config(repository={self.repository!r}, branch={self.branch!r}, "
            f"folder={str(self.folder)!r})"
        )

    @property
    def credential(self) -> Credential:
        return Credential(self.token)

    @property
    def branch_ref(self) -> bytes:
        return f"refs/heads/{self.branch}".encode()

    def validate(self) -> None:
        """Check required inputs and the source-folder precondition.

        Raises:
            ConfigError: branch missing or not a valid ref name, bad depth.
            PreconditionError: *folder* is missing, not a directory, or
                not readable.
        """
        if not self.branch:
            raise ConfigError("branch is required")
        if not check_ref_format(self.branch_ref):
            raise ConfigError(f"invalid branch name {self.branch!r}")
        if self.clone_depth < 0:
            raise ConfigError(f"clone depth must be >= 0, got {self.clone_depth}")

        folder = Path(self.folder)
        if not folder.exists():
            raise PreconditionError(f"folder '{self.folder}' does not exist")
        if not folder.is_dir():
            raise PreconditionError(f"folder '{self.folder}' is not a directory")
        if not os.access(folder, os.R_OK | os.X_OK):
            raise PreconditionError(f"folder '{self.folder}' is not readable")

    def resolve_repository(self) -> str:
        """Return the explicit repository, else the current one."""
        if self.repository:
            return self.repository
        if self.current_repository:
            return self.current_repository
        raise ConfigError(
            "failed to determine repository: GITHUB_REPOSITORY environment variable not set"
        )

    def remote_url(self, repository: str) -> str:
        """``<server_url>/<repository>.git``, without credentials."""
        return f"{self.server_url.rstrip('/')}/{repository.strip('/')}.git"
