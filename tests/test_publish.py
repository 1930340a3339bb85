"""End-to-end tests for publish() against local bare remotes."""

import os
import tempfile

import pytest

from conftest import branch_files, branch_history, branch_sha
from publishdir import (
    AcquireError, ConfigError, GitOperationError, PushRejectedError,
    WorkTreeError, publish,
)
from publishdir import _git
from publishdir import publisher as publish_mod


@pytest.fixture
def private_tmp(tmp_path, monkeypatch):
    """Route tempfile into a directory the test can inspect."""
    d = tmp_path / "tmp"
    d.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(d))
    return d


class TestScenario:
    def test_first_publish_creates_orphan_branch(self, make_config, remote):
        messages = []
        result = publish(make_config(), echo=messages.append)

        assert result.outcome == "published"
        assert result.created_branch
        assert result.repository == "owner/demo"
        assert branch_sha(remote, "release/demo").decode() == result.commit
        assert {p: data for p, (data, _) in branch_files(remote, "release/demo").items()} == {
            "a.txt": b"hello",
            "sub/b.txt": b"world",
        }
        history = branch_history(remote, "release/demo")
        assert len(history) == 1
        assert history[0].parents == []
        assert messages == [
            "Branch 'release/demo' doesn't exist, creating new orphan branch",
            f"Created commit: {result.commit}",
        ]

    def test_second_publish_is_noop(self, make_config, remote):
        first = publish(make_config())
        messages = []
        second = publish(make_config(), echo=messages.append)

        assert second.outcome == "no-op"
        assert second.commit is None
        assert not second.created_branch
        assert second.changes == []
        assert messages == ["No changes to commit"]
        assert branch_sha(remote, "release/demo").decode() == first.commit
        assert len(branch_history(remote, "release/demo")) == 1

    def test_noop_never_pushes(self, make_config, remote, monkeypatch):
        publish(make_config())

        def no_push(*args, **kwargs):
            raise AssertionError("push must not be called for a clean tree")

        monkeypatch.setattr(_git, "push_ref", no_push)
        assert publish(make_config()).outcome == "no-op"


class TestMirrorFidelity:
    def test_deleted_files_are_removed(self, make_config, remote, source):
        first = publish(make_config())
        (source / "a.txt").unlink()
        (source / "new.txt").write_text("new")

        second = publish(make_config())

        assert second.outcome == "published"
        assert sorted(branch_files(remote, "release/demo")) == ["new.txt", "sub/b.txt"]
        history = branch_history(remote, "release/demo")
        assert [c.id.decode() for c in history] == [second.commit, first.commit]
        assert history[0].parents == [first.commit.encode()]
        assert [(c.kind, c.path) for c in second.changes] == [
            ("delete", "a.txt"),
            ("add", "new.txt"),
        ]

    def test_modified_content(self, make_config, remote, source):
        publish(make_config())
        (source / "sub" / "b.txt").write_text("world, again")

        result = publish(make_config())

        assert [(c.kind, c.path) for c in result.changes] == [("modify", "sub/b.txt")]
        assert branch_files(remote, "release/demo")["sub/b.txt"][0] == b"world, again"

    def test_executable_bit(self, make_config, remote, source):
        (source / "run.sh").write_text("#!/bin/sh\n")
        (source / "run.sh").chmod(0o755)

        publish(make_config())

        files = branch_files(remote, "release/demo")
        assert files["run.sh"][1] == _git.GIT_FILEMODE_BLOB_EXECUTABLE
        assert files["a.txt"][1] == _git.GIT_FILEMODE_BLOB

    def test_mode_change_is_a_change(self, make_config, remote, source):
        publish(make_config())
        (source / "a.txt").chmod(0o755)

        result = publish(make_config())

        assert result.outcome == "published"
        assert branch_files(remote, "release/demo")["a.txt"][1] == _git.GIT_FILEMODE_BLOB_EXECUTABLE

    def test_source_git_dir_is_not_published(self, make_config, remote, source):
        (source / ".git").mkdir()
        (source / ".git" / "HEAD").write_text("ref: refs/heads/main\n")

        publish(make_config())

        assert sorted(branch_files(remote, "release/demo")) == ["a.txt", "sub/b.txt"]

    def test_existing_content_is_replaced(self, make_config, remote, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        (other / "old.txt").write_text("old")
        publish(make_config(folder=str(other)))

        publish(make_config())

        assert sorted(branch_files(remote, "release/demo")) == ["a.txt", "sub/b.txt"]

    def test_empty_folder_on_new_branch_is_noop(self, make_config, remote, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        result = publish(make_config(folder=str(empty)))

        assert result.outcome == "no-op"
        assert result.created_branch
        assert branch_sha(remote, "release/demo") is None


class TestCommitMetadata:
    def test_identity_and_message(self, make_config, remote):
        publish(make_config(commit_username="Pub Bot", commit_email="pub@example.com",
                            commit_message="docs: publish site"))

        [commit] = branch_history(remote, "release/demo")
        assert commit.author == b"Pub Bot <pub@example.com>"
        assert commit.committer == b"Pub Bot <pub@example.com>"
        assert commit.message == b"docs: publish site\n"

    def test_other_branches_untouched(self, make_config, remote, tmp_path):
        publish(make_config(branch="gh-pages"))
        before = branch_sha(remote, "gh-pages")

        publish(make_config(branch="docs"))

        assert branch_sha(remote, "gh-pages") == before
        assert branch_sha(remote, "docs") is not None


class TestRepositoryResolution:
    def test_falls_back_to_current_repository(self, make_config, remote):
        result = publish(make_config(repository=None, current_repository="owner/demo"))
        assert result.repository == "owner/demo"
        assert branch_sha(remote, "release/demo") is not None

    def test_no_repository_fails_before_network(self, make_config, private_tmp):
        def probe(*args, **kwargs):
            raise AssertionError("no clone may be attempted")

        with pytest.raises(ConfigError, match="failed to determine repository"):
            publish(make_config(repository=None, current_repository=None), probe=probe)
        assert os.listdir(private_tmp) == []


class TestDryRun:
    def test_reports_without_pushing(self, make_config, remote):
        result = publish(make_config(), dry_run=True)

        assert result.outcome == "dry-run"
        assert result.commit is None
        assert [(c.kind, c.path) for c in result.changes] == [
            ("add", "a.txt"),
            ("add", "sub/b.txt"),
        ]
        assert branch_sha(remote, "release/demo") is None


class TestFailures:
    def test_temp_checkout_removed_on_success(self, make_config, remote, private_tmp):
        publish(make_config())
        assert os.listdir(private_tmp) == []

    def test_temp_checkout_removed_on_push_failure(self, make_config, remote,
                                                   private_tmp, monkeypatch):
        def broken_push(*args, **kwargs):
            raise OSError("connection reset")

        monkeypatch.setattr(_git, "push_ref", broken_push)
        with pytest.raises(GitOperationError, match="failed to push: connection reset") as info:
            publish(make_config())
        assert info.value.step == "push"
        assert isinstance(info.value.__cause__, OSError)
        assert os.listdir(private_tmp) == []

    def test_mirror_failure_is_wrapped(self, make_config, remote, private_tmp, monkeypatch):
        def broken_mirror(source, destination):
            raise PermissionError("denied")

        monkeypatch.setattr(publish_mod, "mirror_directory", broken_mirror)
        with pytest.raises(WorkTreeError, match="failed to copy directory"):
            publish(make_config())
        assert os.listdir(private_tmp) == []
        assert branch_sha(remote, "release/demo") is None

    def test_unreadable_source_entry_aborts_publish(self, make_config, remote, source,
                                                    private_tmp, tmp_path):
        (source / "dangling").symlink_to(tmp_path / "nowhere")

        with pytest.raises(WorkTreeError, match="failed to copy directory") as info:
            publish(make_config())

        assert info.value.step == "copy directory"
        assert isinstance(info.value.__cause__, FileNotFoundError)
        assert branch_sha(remote, "release/demo") is None
        assert os.listdir(private_tmp) == []

    def test_clean_failure_is_wrapped(self, make_config, remote, monkeypatch):
        def broken_clean(path):
            raise OSError("busy")

        monkeypatch.setattr(publish_mod, "clean_working_tree", broken_clean)
        with pytest.raises(WorkTreeError, match="failed to clean working tree"):
            publish(make_config())

    def test_acquire_failure_is_fatal(self, make_config, remote, monkeypatch):
        def boom(path):
            raise OSError("read-only filesystem")

        monkeypatch.setattr(_git, "init_repository", boom)
        with pytest.raises(AcquireError, match="failed to init repository"):
            publish(make_config())

    def test_concurrent_publisher_rejected(self, make_config, remote, tmp_path, source):
        publish(make_config())

        # another publisher lands a commit between our clone and our push
        def racing_probe(url, branch, path, credential, *, depth=1):
            repo = _git.clone_branch(url, path, branch, depth=depth)
            other = tmp_path / "other"
            other.mkdir()
            (other / "theirs.txt").write_text("theirs")
            publish(make_config(folder=str(other)))
            return repo

        (source / "ours.txt").write_text("ours")
        with pytest.raises(PushRejectedError):
            publish(make_config(), probe=racing_probe)
        assert "theirs.txt" in branch_files(remote, "release/demo")
