"""dulwich helpers for the working checkout.

Staging snapshots the working tree straight into the object store as
tree objects; the index file is never consulted.
"""

from __future__ import annotations

import os
import stat
import time
from collections.abc import Callable
from dataclasses import dataclass

from dulwich import porcelain
from dulwich.client import get_transport_and_path
from dulwich.diff_tree import CHANGE_DELETE, tree_changes
from dulwich.objects import Blob, Commit, Tree
from dulwich.protocol import ZERO_SHA
from dulwich.repo import Repo

from .exceptions import GitOperationError, PushRejectedError
from .remote import Credential, redact
from .worktree import METADATA_DIR

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GIT_FILEMODE_TREE = 0o040000
GIT_FILEMODE_BLOB = 0o100644
GIT_FILEMODE_BLOB_EXECUTABLE = 0o100755
GIT_FILEMODE_LINK = 0o120000

REMOTE_NAME = "origin"


@dataclass(frozen=True)
class Change:
    """One staged path: ``kind`` is ``add``, ``modify`` or ``delete``."""

    kind: str
    path: str


def identity(name: str, email: str) -> bytes:
    return f"{name} <{email}>".encode()


# ---------------------------------------------------------------------------
# Repository setup
# ---------------------------------------------------------------------------

def clone_branch(url: str, path: str, branch: str, *, depth: int | None = 1) -> Repo:
    """Clone only *branch* of *url* into *path* and check it out.

    Only the branch ref is fetched; other remote branches are never copied.

    *depth* of None or 0 fetches the full history.
    """
    return porcelain.clone(
        url,
        path,
        branch=branch.encode(),
        refspecs=[f"refs/heads/{branch}".encode()],
        depth=depth or None,
        errstream=porcelain.NoneStream(),
    )


def init_repository(path: str) -> Repo:
    """Create an empty non-bare repository at *path*."""
    return Repo.init(path, mkdir=not os.path.exists(path))


def checkout_orphan(repo: Repo, branch_ref: bytes) -> None:
    """Point HEAD at *branch_ref* without creating a commit.

    The branch comes into existence with the first commit, which has no
    parents.
    """
    repo.refs.set_symbolic_ref(b"HEAD", branch_ref)


def set_remote(repo: Repo, url: str, name: str = REMOTE_NAME) -> None:
    """Register (or re-point) remote *name* at *url*."""
    config = repo.get_config()
    section = (b"remote", name.encode())
    config.set(section, b"url", url.encode())
    if not _has_fetch(config, section):
        config.set(section, b"fetch", f"+refs/heads/*:refs/remotes/{name}/*".encode())
    config.write_to_path()


def _has_fetch(config, section) -> bool:
    try:
        config.get(section, b"fetch")
    except KeyError:
        return False
    return True


def remote_url(repo: Repo, name: str = REMOTE_NAME) -> str:
    return repo.get_config().get((b"remote", name.encode()), b"url").decode()


def head_commit(repo: Repo) -> bytes | None:
    """SHA of the commit HEAD resolves to, or None on an unborn branch."""
    try:
        return repo.head()
    except KeyError:
        return None


# ---------------------------------------------------------------------------
# Staging and status
# ---------------------------------------------------------------------------

def stage_all(repo: Repo) -> bytes:
    """Write the whole working tree (minus ``.git``) as a tree object.

    New, modified and deleted paths are all captured because the tree is
    rebuilt from disk.  Empty directories are not recorded.
    """
    return _write_tree(repo, repo.path, root=True)


def _write_tree(repo: Repo, dir_path: str, *, root: bool = False) -> bytes | None:
    tree = Tree()
    with os.scandir(dir_path) as it:
        for entry in it:
            if entry.name == METADATA_DIR:
                continue
            name = os.fsencode(entry.name)
            st = entry.stat(follow_symlinks=False)
            if stat.S_ISLNK(st.st_mode):
                blob = Blob.from_string(os.fsencode(os.readlink(entry.path)))
                mode = GIT_FILEMODE_LINK
            elif stat.S_ISDIR(st.st_mode):
                sub = _write_tree(repo, entry.path)
                if sub is not None:
                    tree.add(name, GIT_FILEMODE_TREE, sub)
                continue
            else:
                with open(entry.path, "rb") as f:
                    blob = Blob.from_string(f.read())
                mode = GIT_FILEMODE_BLOB_EXECUTABLE if st.st_mode & 0o111 else GIT_FILEMODE_BLOB
            repo.object_store.add_object(blob)
            tree.add(name, mode, blob.id)

    if not root and not len(tree):
        return None
    repo.object_store.add_object(tree)
    return tree.id


def commit_tree(repo: Repo, commit_id: bytes | None) -> bytes | None:
    if commit_id is None:
        return None
    return repo[commit_id].tree


def staged_changes(repo: Repo, old_tree: bytes | None, new_tree: bytes) -> list[Change]:
    """Diff two trees into a sorted list of `Change` entries.

    *old_tree* of None compares against an empty tree.
    """
    changes = []
    for change in tree_changes(repo.object_store, old_tree, new_tree):
        entry = change.old if change.type == CHANGE_DELETE else change.new
        changes.append(Change(kind=change.type, path=entry.path.decode("utf-8", "surrogateescape")))
    return sorted(changes, key=lambda c: c.path)


# ---------------------------------------------------------------------------
# Commit and push
# ---------------------------------------------------------------------------

def create_commit(
    repo: Repo,
    ref_name: bytes,
    author: bytes,
    message: str,
    tree_id: bytes,
    parents: list[bytes],
) -> bytes:
    """Create a commit stamped with the current time and move *ref_name* to it."""
    c = Commit()
    c.tree = tree_id
    c.parents = parents
    c.author = c.committer = author
    now = int(time.time())
    offset = time.localtime(now).tm_gmtoff
    c.author_time = c.commit_time = now
    c.author_timezone = c.commit_timezone = offset
    msg = message.encode()
    if not msg.endswith(b"\n"):
        msg += b"\n"
    c.message = msg
    c.encoding = b"UTF-8"
    repo.object_store.add_object(c)
    repo.refs[ref_name] = c.id
    return c.id


def push_ref(
    repo: Repo,
    ref_name: bytes,
    new_sha: bytes,
    expected_sha: bytes | None,
    *,
    credential: Credential | None = None,
    remote: str = REMOTE_NAME,
    progress: Callable[[bytes], None] | None = None,
):
    """Push *new_sha* to *ref_name* on *remote*.

    The update only goes through if the remote ref still points at
    *expected_sha* (absent when None); otherwise `PushRejectedError`.
    Transport failures become `GitOperationError` with the token masked.
    """
    url = remote_url(repo, remote)
    if credential is not None:
        url = credential.apply(url)
    client, path = get_transport_and_path(url)

    def update_refs(remote_refs):
        current = remote_refs.get(ref_name)
        if current == ZERO_SHA:
            current = None
        if current != expected_sha:
            raise PushRejectedError(
                "push",
                f"{ref_name.decode()} on {redact(url)} is at "
                f"{current.decode()[:7] if current else 'nothing'}, "
                f"expected {expected_sha.decode()[:7] if expected_sha else 'nothing'} "
                "(non-fast-forward)",
            )
        return {ref_name: new_sha}

    def gen_pack(have, want, *, ofs_delta=False, progress=progress):
        return repo.generate_pack_data(have, want, progress=progress, ofs_delta=ofs_delta)

    try:
        result = client.send_pack(path, update_refs, gen_pack, progress=progress)
    except PushRejectedError:
        raise
    except Exception as exc:
        cause = credential.scrub(str(exc)) if credential is not None else str(exc)
        raise GitOperationError("push", cause) from exc

    ref_status = getattr(result, "ref_status", None) or {}
    error = ref_status.get(ref_name)
    if error:
        raise PushRejectedError("push", f"remote rejected {ref_name.decode()}: {error}")
    return result
