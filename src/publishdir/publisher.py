"""Publish a local directory as the sole content of a remote branch."""

from __future__ import annotations

import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from . import _git
from .branch import BranchProbe, acquire, probe_branch
from .config import Config
from .exceptions import AcquireError, GitOperationError, PublishError, WorkTreeError
from .worktree import clean_working_tree, mirror_directory

TEMP_PREFIX = "publish-directory-"

PUBLISHED = "published"
NO_OP = "no-op"
DRY_RUN = "dry-run"


@dataclass
class PublishResult:
    """What a publish run did.

    ``commit`` is the new commit's hex SHA when ``outcome`` is
    ``"published"`` and None otherwise.
    """

    outcome: str
    repository: str
    branch: str
    commit: str | None = None
    created_branch: bool = False
    changes: list[_git.Change] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.outcome == PUBLISHED


@contextmanager
def _step(step: str, error_cls: type[PublishError]) -> Iterator[None]:
    """Wrap any failure inside the block as *error_cls* tagged with *step*."""
    try:
        yield
    except PublishError:
        raise
    except Exception as exc:
        raise error_cls(step, exc) from exc


def publish(
    config: Config,
    *,
    dry_run: bool = False,
    echo: Callable[[str], None] | None = None,
    progress: Callable[[bytes], None] | None = None,
    probe: BranchProbe = probe_branch,
) -> PublishResult:
    """Replace the content of ``config.branch`` with ``config.folder`` and push.

    The branch is shallow-cloned into a private temporary directory (or
    started as an orphan when it does not exist), emptied, refilled from
    the folder, and committed.  When the result equals the branch tip no
    commit or push happens.  The temporary directory is removed on every
    exit path.

    Args:
        dry_run: Stop after computing the change set.
        echo: Called with each status line.
        progress: Called with raw transport progress bytes during push.
        probe: Branch-exists check used by acquisition.

    Raises:
        PublishError: Any step failed; ``step`` names which one.
    """
    repository = config.resolve_repository()
    url = config.remote_url(repository)
    credential = config.credential

    with tempfile.TemporaryDirectory(prefix=TEMP_PREFIX) as tmp:
        path = str(Path(tmp) / "checkout")

        with _step("acquire branch", AcquireError):
            checkout = acquire(
                url, config.branch, path, credential,
                depth=config.clone_depth, echo=echo, probe=probe,
            )

        with checkout:
            with _step("clean working tree", WorkTreeError):
                clean_working_tree(checkout.path)

            with _step("copy directory", WorkTreeError):
                mirror_directory(config.folder, checkout.path)

            with _step("stage changes", GitOperationError):
                tree_id = _git.stage_all(checkout.repo)

            with _step("get status", GitOperationError):
                base_tree = _git.commit_tree(checkout.repo, checkout.base)
                changes = _git.staged_changes(checkout.repo, base_tree, tree_id)

            result = PublishResult(
                outcome=NO_OP,
                repository=repository,
                branch=config.branch,
                created_branch=checkout.created,
                changes=changes,
            )

            if not changes:
                if echo is not None:
                    echo("No changes to commit")
                return result

            if dry_run:
                result.outcome = DRY_RUN
                if echo is not None:
                    echo(f"Dry run: {len(changes)} change(s), nothing committed")
                return result

            with _step("commit", GitOperationError):
                commit_id = _git.create_commit(
                    checkout.repo,
                    checkout.branch_ref,
                    _git.identity(config.commit_username, config.commit_email),
                    config.commit_message,
                    tree_id,
                    [checkout.base] if checkout.base is not None else [],
                )
            result.commit = commit_id.decode()
            if echo is not None:
                echo(f"Created commit: {result.commit}")

            with _step("push", GitOperationError):
                _git.push_ref(
                    checkout.repo,
                    checkout.branch_ref,
                    commit_id,
                    checkout.base,
                    credential=credential,
                    progress=progress,
                )

            result.outcome = PUBLISHED
            return result
