"""Shared fixtures for vaultsync tests."""

import pytest
from click.testing import CliRunner

from vaultsync.vault import GitVault, init_vault
from vaultsync.mirror import MirrorOptions


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def server(tmp_path):
    """Path of a bare repository with an empty 'main' repository."""
    p = str(tmp_path / "vault.git")
    init_vault(p, "main")
    return p


@pytest.fixture
def backend():
    return GitVault()


@pytest.fixture
def client(server, backend):
    """A logged-in client, logged out after the test."""
    c = backend.login(server, "ci", "secret", "main")
    yield c
    c.logout()


@pytest.fixture
def source(tmp_path):
    """A source tree with a few files in nested folders."""
    src = tmp_path / "source"
    (src / "docs").mkdir(parents=True)
    (src / "a.txt").write_text("alpha\n")
    (src / "b.txt").write_text("bravo\n")
    (src / "docs" / "readme.md").write_text("# readme\n")
    return src


@pytest.fixture
def make_options(tmp_path, server):
    """Factory for MirrorOptions with a fresh, empty work dir per call."""
    counter = iter(range(1000))

    def _make(**kwargs):
        defaults = dict(
            server=server,
            repository="main",
            repo_folder="$/Project",
            user="ci",
            password="secret",
            work_dir=str(tmp_path / f"work{next(counter)}"),
        )
        defaults.update(kwargs)
        return MirrorOptions(**defaults)

    return _make


@pytest.fixture
def case_sensitive(tmp_path):
    """Skip unless tmp_path lives on a case-sensitive filesystem."""
    marker = tmp_path / "CaseMarker"
    marker.write_text("")
    folded = (tmp_path / "casemarker").exists()
    marker.unlink()
    if folded:
        pytest.skip("filesystem is case-insensitive")
