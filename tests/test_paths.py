"""Tests for repository path normalization and PathMapper."""

import os

import pytest

from vaultsync.exceptions import PathMappingError, PreconditionError
from vaultsync.paths import (
    PathMapper,
    is_below,
    is_under,
    normalize_repo_path,
    parent_repo_path,
    same_path,
)


class TestNormalize:
    @pytest.mark.parametrize("raw", ["Project/src", "/Project/src", "$/Project/src/", "$\\Project\\src"])
    def test_forms(self, raw):
        assert normalize_repo_path(raw) == "$/Project/src"

    @pytest.mark.parametrize("raw", ["", "/", "$", "$/"])
    def test_root(self, raw):
        assert normalize_repo_path(raw) == "$"

    @pytest.mark.parametrize("raw", ["$/a/../b", "$/a/./b", "$/a//b", "$x/a"])
    def test_invalid(self, raw):
        with pytest.raises(PathMappingError):
            normalize_repo_path(raw)

    def test_mapping_error_is_precondition(self):
        with pytest.raises(PreconditionError):
            normalize_repo_path("$/..")


class TestHelpers:
    def test_same_path_ignores_case(self):
        assert same_path("$/Project/A.txt", "$/project/a.TXT")

    def test_is_under_self(self):
        assert is_under("$/Project", "$/project")

    def test_is_under_child(self):
        assert is_under("$/Project/sub/x", "$/Project")

    def test_sibling_prefix_is_not_under(self):
        assert not is_under("$/ProjectX/a", "$/Project")

    def test_is_below_is_strict(self):
        assert is_below("$/Project/a", "$/project")
        assert not is_below("$/Project", "$/Project")
        assert not is_below("$/ProjectX/a", "$/Project")

    def test_parent(self):
        assert parent_repo_path("$/Project/a.txt") == "$/Project"
        assert parent_repo_path("$/Project") == "$"


class TestPathMapper:
    def test_to_disk_path(self, tmp_path):
        m = PathMapper("$/Project", tmp_path)
        assert m.to_disk_path("$/Project/src/main.c") == str(tmp_path / "src" / "main.c")

    def test_root_maps_to_working_root(self, tmp_path):
        m = PathMapper("$/Project", tmp_path)
        assert m.to_disk_path("$/Project") == str(tmp_path)

    def test_case_insensitive_root(self, tmp_path):
        m = PathMapper("$/Project", tmp_path)
        assert m.to_disk_path("$/PROJECT/a.txt") == str(tmp_path / "a.txt")

    def test_backslash_separators(self, tmp_path):
        m = PathMapper("$/Project", tmp_path)
        assert m.to_disk_path("$\\Project\\src\\a.txt") == str(tmp_path / "src" / "a.txt")

    def test_outside_root_rejected(self, tmp_path):
        m = PathMapper("$/Project", tmp_path)
        with pytest.raises(PathMappingError):
            m.to_disk_path("$/Other/a.txt")

    def test_sibling_prefix_rejected(self, tmp_path):
        m = PathMapper("$/Project", tmp_path)
        with pytest.raises(PathMappingError):
            m.to_disk_path("$/ProjectX/a.txt")

    def test_to_repo_path(self, tmp_path):
        m = PathMapper("$/Project", tmp_path)
        assert m.to_repo_path(tmp_path / "src" / "main.c") == "$/Project/src/main.c"
        assert m.to_repo_path(tmp_path) == "$/Project"

    def test_to_repo_path_outside_rejected(self, tmp_path):
        m = PathMapper("$/Project", tmp_path / "wc")
        with pytest.raises(PathMappingError):
            m.to_repo_path(tmp_path / "elsewhere" / "a.txt")

    def test_round_trip(self, tmp_path):
        m = PathMapper("$/Project", tmp_path)
        for p in ["$/Project/a.txt", "$/Project/deep/er/b.bin", "$/Project"]:
            assert m.to_repo_path(m.to_disk_path(p)) == p

    def test_relative_dir_to_repo(self, tmp_path):
        m = PathMapper("$/Project", tmp_path)
        assert m.relative_dir_to_repo("") == "$/Project"
        assert m.relative_dir_to_repo(".") == "$/Project"
        assert m.relative_dir_to_repo(os.path.join("a", "b")) == "$/Project/a/b"

    def test_repository_root_folder(self, tmp_path):
        m = PathMapper("$", tmp_path)
        assert m.to_disk_path("$/a.txt") == str(tmp_path / "a.txt")
        assert m.to_repo_path(tmp_path / "a.txt") == "$/a.txt"
