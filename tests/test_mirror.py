"""End-to-end tests: mirror a source tree into the git-backed repository."""

import os
import shutil
from pathlib import Path

import pytest
from dulwich.repo import Repo

from vaultsync._types import ChangeKind
from vaultsync.exceptions import AuthError, PreconditionError
from vaultsync.mirror import ensure_empty_work_dir, mirror_filesystem, mirror_git
from vaultsync.session import ReconciliationSession


def _tip_files(server):
    """{path: content} of the repository tip."""
    repo = Repo(server)
    try:
        tree = repo[repo.refs[b"refs/heads/main"]].tree
        return {
            e.path.decode(): repo.object_store[e.sha].data.decode()
            for e in repo.object_store.iter_tree_contents(tree)
        }
    finally:
        repo.close()


class TestWorkDir:
    def test_created_when_missing(self, tmp_path):
        ensure_empty_work_dir(str(tmp_path / "new"))
        assert (tmp_path / "new").is_dir()

    def test_non_empty_rejected(self, tmp_path):
        (tmp_path / "w").mkdir()
        (tmp_path / "w" / "junk").write_text("x")
        with pytest.raises(PreconditionError, match="not empty"):
            ensure_empty_work_dir(str(tmp_path / "w"))


class TestMirrorFilesystem:
    def test_first_run_adds_everything(self, source, server, make_options):
        result = mirror_filesystem(str(source), make_options())
        assert result.changes.add == ["$/Project/a.txt", "$/Project/b.txt", "$/Project/docs/readme.md"]
        assert result.committed == 3
        assert _tip_files(server) == {
            "Project/a.txt": "alpha\n",
            "Project/b.txt": "bravo\n",
            "Project/docs/readme.md": "# readme\n",
        }

    def test_second_run_is_noop(self, source, server, make_options):
        mirror_filesystem(str(source), make_options())
        before = Repo(server)
        head = before.refs[b"refs/heads/main"]
        before.close()

        result = mirror_filesystem(str(source), make_options(label="v2"))
        assert result.changes.in_sync
        assert result.committed == 0
        assert result.label is None
        repo = Repo(server)
        try:
            assert repo.refs[b"refs/heads/main"] == head
            assert b"refs/tags/v2" not in repo.refs
        finally:
            repo.close()

    def test_modify_add_delete(self, source, server, make_options):
        mirror_filesystem(str(source), make_options())
        (source / "a.txt").write_text("alpha 2\n")
        (source / "b.txt").unlink()
        (source / "new").mkdir()
        (source / "new" / "c.txt").write_text("charlie\n")

        result = mirror_filesystem(str(source), make_options())
        assert result.changes.modify == ["$/Project/a.txt"]
        assert result.changes.delete == ["$/Project/b.txt"]
        assert result.changes.add == ["$/Project/new/c.txt"]
        assert _tip_files(server) == {
            "Project/a.txt": "alpha 2\n",
            "Project/docs/readme.md": "# readme\n",
            "Project/new/c.txt": "charlie\n",
        }

    def test_deleted_folder_is_one_item(self, source, server, make_options):
        (source / "docs" / "deep").mkdir()
        (source / "docs" / "deep" / "x.txt").write_text("x")
        mirror_filesystem(str(source), make_options())
        shutil.rmtree(source / "docs")

        result = mirror_filesystem(str(source), make_options())
        assert [(i.repository_path, i.kind) for i in result.changes] == [
            ("$/Project/docs", ChangeKind.DELETE)
        ]
        assert set(_tip_files(server)) == {"Project/a.txt", "Project/b.txt"}

    def test_removed_folder_and_new_root_file(self, tmp_path, make_options):
        src = tmp_path / "tree"
        (src / "sub").mkdir(parents=True)
        (src / "a.txt").write_text("a")
        (src / "sub" / "b.txt").write_text("b")
        mirror_filesystem(str(src), make_options())
        shutil.rmtree(src / "sub")
        (src / "c.txt").write_text("c")

        result = mirror_filesystem(str(src), make_options())
        assert sorted((i.repository_path, i.kind) for i in result.changes) == [
            ("$/Project/c.txt", ChangeKind.ADD),
            ("$/Project/sub", ChangeKind.DELETE),
        ]

    def test_label_applied_after_commit(self, source, server, make_options):
        result = mirror_filesystem(str(source), make_options(label="build-1"))
        assert result.label == "build-1"
        repo = Repo(server)
        try:
            assert b"refs/tags/build-1" in repo.refs
        finally:
            repo.close()

    def test_dry_run_commits_nothing(self, source, server, make_options):
        result = mirror_filesystem(str(source), make_options(dry_run=True))
        assert result.changes.total == 3
        assert result.committed == 0
        assert _tip_files(server) == {}

    def test_dry_run_leaves_no_pending_state(self, source, server, make_options):
        mirror_filesystem(str(source), make_options(dry_run=True))
        result = mirror_filesystem(str(source), make_options())
        assert result.committed == 3

    def test_ignored_dirs_not_mirrored(self, source, server, make_options):
        (source / ".idea").mkdir()
        (source / ".idea" / "workspace.xml").write_text("<x/>")
        mirror_filesystem(str(source), make_options())
        assert not any(p.startswith("Project/.idea") for p in _tip_files(server))

    def test_missing_source(self, tmp_path, make_options):
        with pytest.raises(PreconditionError):
            mirror_filesystem(str(tmp_path / "absent"), make_options())

    def test_non_empty_work_dir(self, source, tmp_path, make_options):
        work = tmp_path / "busy"
        work.mkdir()
        (work / "x").write_text("x")
        with pytest.raises(PreconditionError):
            mirror_filesystem(str(source), make_options(work_dir=str(work)))

    def test_bad_credentials(self, source, server, make_options):
        from vaultsync.vault import add_user
        add_user(server, "ci", "right")
        with pytest.raises(AuthError):
            mirror_filesystem(str(source), make_options(password="wrong"))


class TestMirrorGit:
    def test_git_branch_mirrored_without_dot_git(self, tmp_path, server, make_options):
        from dulwich import porcelain

        up = tmp_path / "upstream"
        repo = porcelain.init(str(up))
        (up / "main.c").write_text("int main;\n")
        porcelain.add(repo, paths=[str(up / "main.c")])
        porcelain.commit(repo, message=b"c1", author=b"T <t@e>", committer=b"T <t@e>")
        repo.refs[b"refs/heads/release"] = repo.head()
        repo.close()

        options = make_options()
        result = mirror_git(str(up), "release", options)
        assert result.changes.add == ["$/Project/main.c"]
        assert _tip_files(server) == {"Project/main.c": "int main;\n"}
        assert (Path(options.work_dir) / "git" / "main.c").exists()


class TestReshapedSource:
    def test_folder_replaced_by_file(self, tmp_path, server, make_options):
        src = tmp_path / "tree"
        (src / "foo").mkdir(parents=True)
        (src / "foo" / "x.txt").write_text("x")
        mirror_filesystem(str(src), make_options())
        shutil.rmtree(src / "foo")
        (src / "foo").write_text("now a file\n")

        result = mirror_filesystem(str(src), make_options())
        assert [(i.repository_path, i.kind) for i in result.changes] == [
            ("$/Project/foo", ChangeKind.ADD)
        ]
        assert _tip_files(server) == {"Project/foo": "now a file\n"}
        assert mirror_filesystem(str(src), make_options()).changes.in_sync

    def test_file_replaced_by_folder(self, tmp_path, server, make_options):
        src = tmp_path / "tree"
        src.mkdir()
        (src / "foo").write_text("file\n")
        mirror_filesystem(str(src), make_options())
        (src / "foo").unlink()
        (src / "foo").mkdir()
        (src / "foo" / "x.txt").write_text("x\n")

        mirror_filesystem(str(src), make_options())
        assert _tip_files(server) == {"Project/foo/x.txt": "x\n"}
        assert mirror_filesystem(str(src), make_options()).changes.in_sync

    def test_case_only_rename(self, tmp_path, server, make_options, case_sensitive):
        src = tmp_path / "tree"
        src.mkdir()
        (src / "README.md").write_text("hello\n")
        mirror_filesystem(str(src), make_options())
        (src / "README.md").rename(src / "readme.md")

        result = mirror_filesystem(str(src), make_options())
        assert [(i.repository_path, i.kind) for i in result.changes] == [
            ("$/Project/readme.md", ChangeKind.MODIFY)
        ]
        assert _tip_files(server) == {"Project/readme.md": "hello\n"}
        assert mirror_filesystem(str(src), make_options()).changes.in_sync


class TestEditedFiles:
    def test_checked_out_edit_is_committed_once(self, source, server, make_options, backend):
        mirror_filesystem(str(source), make_options())
        work = make_options().vault_dir
        with ReconciliationSession(backend, server, "$/Project", work,
                                   repository="main", user="ci", password="secret") as session:
            session.get()
            session.client.checkout([os.path.join(work, "a.txt")], False, False)
            with open(os.path.join(work, "a.txt"), "w") as f:
                f.write("edited\n")
            changes = session.reconcile()
            assert [(i.repository_path, i.kind) for i in changes] == [
                ("$/Project/a.txt", ChangeKind.MODIFY)
            ]
            assert session.commit() == 1
        assert _tip_files(server)["Project/a.txt"] == "edited\n"
