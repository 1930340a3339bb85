"""Shared fixtures for publishdir tests."""

import pytest
from click.testing import CliRunner
from dulwich.repo import Repo as DulwichRepo

from publishdir import Config


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def server(tmp_path):
    """Directory standing in for the git host; remotes live at <server>/<owner>/<name>.git."""
    p = tmp_path / "server"
    (p / "owner").mkdir(parents=True)
    return p


@pytest.fixture
def remote(server):
    """An empty bare repository at owner/demo."""
    p = str(server / "owner" / "demo.git")
    DulwichRepo.init_bare(p, mkdir=True)
    return p


@pytest.fixture
def source(tmp_path):
    """Folder with a.txt ("hello") and sub/b.txt ("world")."""
    root = tmp_path / "site"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("hello")
    (root / "sub" / "b.txt").write_text("world")
    return root


@pytest.fixture
def make_config(server, source):
    """Build a Config pointing at the local server; keyword overrides apply."""
    def _make(**overrides):
        values = dict(
            repository="owner/demo",
            branch="release/demo",
            folder=str(source),
            server_url=server.as_uri(),
            # local transports clone the full history
            clone_depth=0,
        )
        values.update(overrides)
        return Config(**values)
    return _make


# ---------------------------------------------------------------------------
# Remote inspection helpers
# ---------------------------------------------------------------------------

def branch_sha(remote_path, branch):
    """Return the hex SHA of *branch* on the bare repo, or None."""
    repo = DulwichRepo(remote_path)
    try:
        return repo.refs[f"refs/heads/{branch}".encode()]
    except KeyError:
        return None
    finally:
        repo.close()


def branch_files(remote_path, branch):
    """Return {path: (data, mode)} for the tip tree of *branch*."""
    repo = DulwichRepo(remote_path)
    try:
        commit = repo[repo.refs[f"refs/heads/{branch}".encode()]]
        return {
            entry.path.decode(): (repo[entry.sha].data, entry.mode)
            for entry in repo.object_store.iter_tree_contents(commit.tree)
        }
    finally:
        repo.close()


def branch_history(remote_path, branch):
    """Return the commits of *branch*, newest first."""
    repo = DulwichRepo(remote_path)
    try:
        tip = repo.refs[f"refs/heads/{branch}".encode()]
        return [entry.commit for entry in repo.get_walker(include=[tip])]
    finally:
        repo.close()
