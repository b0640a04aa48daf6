# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_paths.py

"""Tests for path normalization, exclusions, user-config detection and containment."""

import pytest

from nextup.core.paths import (
    clean_lower, find_actual_case, is_user_config, load_exclusions,
    matches_exclusion, normalize, resolve_within,
)
from nextup.system.exceptions import PathTraversalError


class TestNormalize:
    def test_backslashes_become_forward_slashes(self):
        assert normalize("sounds\\misc\\ding.ogg") == "sounds/misc/ding.ogg"

    def test_dot_segments_collapse(self):
        assert normalize("./scripts/../scripts/main.lua") == "scripts/main.lua"

    def test_empty_path_is_current_directory(self):
        assert normalize("") == "."

    @pytest.mark.parametrize("path", [
        "sounds\\misc\\ding.ogg",
        "./scripts/main.lua",
        "../outside/file.txt",
        "sounds/custom/",
        "//server/share/file.txt",
        "",
    ])
    def test_idempotent(self, path):
        once = normalize(path)
        assert normalize(once) == once

    def test_clean_lower(self):
        assert clean_lower("Worlds\\Miriani.MCL") == "worlds/miriani.mcl"


class TestIsUserConfig:
    @pytest.mark.parametrize("path", [
        "mushclient.ini",
        "MUSHclient.ini",
        "mushclient_prefs.sqlite",
        "worlds/miriani.mcl",
        "Worlds\\Other.MCL",
        "worlds/plugins/state/abc.xml",
        "logs/today.txt",
        "worlds/settings/keys.ini",
    ])
    def test_user_files(self, path):
        assert is_user_config(path)

    @pytest.mark.parametrize("path", [
        "MUSHclient.exe",
        "scripts/main.lua",
        "miriani.mcl",  # world files only count inside worlds/
        "worlds/plugins/miriani.xml",
        "docs/mushclient.ini",
    ])
    def test_program_files(self, path):
        assert not is_user_config(path)


class TestMatchesExclusion:
    def test_exact_match_is_case_insensitive(self):
        assert matches_exclusion("Sounds/Custom.ogg", {"sounds/custom.ogg"})

    def test_glob_stays_within_one_directory(self):
        patterns = {"worlds/*.mcl"}
        assert matches_exclusion("worlds/miriani.mcl", patterns)
        assert not matches_exclusion("worlds/sub/miriani.mcl", patterns)

    def test_directory_prefix(self):
        patterns = {"sounds/custom/"}
        assert matches_exclusion("sounds/custom/a.ogg", patterns)
        assert matches_exclusion("sounds/custom/deep/b.ogg", patterns)
        assert not matches_exclusion("sounds/customs.ogg", patterns)

    def test_no_patterns(self):
        assert not matches_exclusion("anything.txt", frozenset())


class TestLoadExclusions:
    def test_missing_file_gives_empty_set(self, tmp_path):
        assert load_exclusions(tmp_path / ".updater-excludes") == frozenset()

    def test_comments_blank_lines_and_normalization(self, tmp_path):
        excludes = tmp_path / ".updater-excludes"
        excludes.write_text(
            "# user files\n"
            "\n"
            "  MUSHclient.ini  \n"
            "Sounds\\Custom\\\n"
            "worlds/*.mcl\n"
        )
        assert load_exclusions(excludes) == frozenset({
            "mushclient.ini",
            "sounds/custom/",
            "worlds/*.mcl",
        })

    def test_directory_pattern_keeps_trailing_slash(self, tmp_path):
        excludes = tmp_path / ".updater-excludes"
        excludes.write_text("sounds/custom/\n")
        patterns = load_exclusions(excludes)
        assert matches_exclusion("sounds/custom/x.ogg", patterns)

    def test_legacy_codepage_file_still_loads(self, tmp_path):
        excludes = tmp_path / ".updater-excludes"
        excludes.write_bytes("# caf\xe9 notes\nsounds/\n".encode("latin-1"))
        assert load_exclusions(excludes) == frozenset({"sounds/"})


class TestFindActualCase:
    def test_existing_path_returned_as_is(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        assert find_actual_case(target) == target

    def test_case_insensitive_match(self, tmp_path):
        (tmp_path / "MUSHclient.exe").write_text("x")
        found = find_actual_case(tmp_path / "mushclient.exe")
        assert found.name in ("MUSHclient.exe", "mushclient.exe")
        assert found.exists()

    def test_missing_parent_falls_back(self, tmp_path):
        target = tmp_path / "nope" / "file.txt"
        assert find_actual_case(target) == target


class TestResolveWithin:
    def test_nested_path(self, tmp_path):
        assert resolve_within(tmp_path, "a/b/c.txt") == (tmp_path / "a" / "b" / "c.txt").resolve()

    def test_dotdot_that_stays_inside(self, tmp_path):
        assert resolve_within(tmp_path, "a/../b.txt") == (tmp_path / "b.txt").resolve()

    @pytest.mark.parametrize("path", ["../evil.txt", "a/../../evil.txt", "/etc/passwd"])
    def test_escape_is_rejected(self, tmp_path, path):
        with pytest.raises(PathTraversalError, match="path traversal attempt detected"):
            resolve_within(tmp_path / "root", path)

    def test_sibling_with_common_prefix_is_rejected(self, tmp_path):
        root = tmp_path / "install"
        root.mkdir()
        with pytest.raises(PathTraversalError):
            resolve_within(root, "../install-evil/x.txt")
