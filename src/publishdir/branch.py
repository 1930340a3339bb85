"""Branch acquisition: clone the target branch, or start it as an orphan."""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass

from dulwich.repo import Repo

from . import _git
from .exceptions import AcquireError
from .remote import Credential


@dataclass
class Checkout:
    """A working checkout of one branch in a private directory."""

    repo: Repo
    path: str
    branch: str
    created: bool = False
    base: bytes | None = None   # commit the checkout started from; None for an orphan

    def __enter__(self) -> Checkout:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def branch_ref(self) -> bytes:
        return f"refs/heads/{self.branch}".encode()

    def close(self) -> None:
        self.repo.close()


# ---------------------------------------------------------------------------
# Branch-exists check
# ---------------------------------------------------------------------------

def is_missing_branch(exc: BaseException) -> bool:
    """Decide whether a failed clone means the branch does not exist yet.

    Every failure currently counts, including transport and auth errors,
    so an unreachable remote also leads to a new orphan branch.  Tighten
    this to a "ref not found" check to stop treating those as absent.
    """
    return True


def probe_branch(
    url: str,
    branch: str,
    path: str,
    credential: Credential,
    *,
    depth: int | None = 1,
) -> Repo | None:
    """Clone *branch* into *path*, or return None if it is treated as absent.

    The clone attempt doubles as the existence check so only one round
    trip is made.  A half-written *path* is removed before returning None.
    """
    try:
        return _git.clone_branch(credential.apply(url), path, branch, depth=depth)
    except Exception as exc:
        if not is_missing_branch(exc):
            raise
    if os.path.exists(path):
        shutil.rmtree(path)
    return None


BranchProbe = Callable[..., "Repo | None"]


# ---------------------------------------------------------------------------
# Acquire
# ---------------------------------------------------------------------------

def acquire(
    url: str,
    branch: str,
    path: str,
    credential: Credential,
    *,
    depth: int | None = 1,
    echo: Callable[[str], None] | None = None,
    probe: BranchProbe = probe_branch,
) -> Checkout:
    """Obtain a checkout of *branch* from *url* at *path*.

    If the branch exists it is shallow-cloned (single branch, *depth*
    commits).  Otherwise a new repository is initialized with *branch*
    as an unborn orphan branch and *url* registered as ``origin``.
    The token is never written to the checkout's config.

    Raises:
        AcquireError: init, branch creation, or remote registration failed.
    """
    repo = probe(url, branch, path, credential, depth=depth)
    if repo is not None:
        try:
            _git.set_remote(repo, url)
        except OSError as exc:
            repo.close()
            raise AcquireError("add remote", exc) from exc
        return Checkout(repo, path, branch, created=False, base=_git.head_commit(repo))

    if echo is not None:
        echo(f"Branch '{branch}' doesn't exist, creating new orphan branch")

    try:
        repo = _git.init_repository(path)
    except OSError as exc:
        raise AcquireError("init repository", exc) from exc

    checkout = Checkout(repo, path, branch, created=True, base=None)
    try:
        _git.checkout_orphan(repo, checkout.branch_ref)
    except OSError as exc:
        repo.close()
        raise AcquireError("create branch", exc) from exc
    try:
        _git.set_remote(repo, url)
    except OSError as exc:
        repo.close()
        raise AcquireError("add remote", exc) from exc
    return checkout
