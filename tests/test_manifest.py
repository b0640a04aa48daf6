# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_manifest.py

"""Tests for the manifest model and the ManifestStore persistence rules."""

import orjson
import pytest

from nextup.data.manifest import FileRecord, Manifest, ManifestStore, TreeItem
from nextup.system.exceptions import ManifestNotFoundError, ManifestParseError

from helpers import make_manifest, write_files


class TestManifestJson:
    def test_comment_lines_are_ignored(self):
        raw = (
            "// generated by the release script\n"
            "{\n"
            '  "a.txt": {"name": "a.txt", "hash": "h1", "url": "u"},\n'
            "  // trailing note\n"
            '  "b.txt": {"name": "b.txt", "hash": "h2"}\n'
            "}\n"
        )
        manifest = Manifest.from_json(raw)
        assert set(manifest) == {"a.txt", "b.txt"}
        assert manifest.get("b.txt").url == ""

    def test_keys_are_normalized(self):
        raw = b'{"sounds\\\\ding.ogg": {"name": "sounds/ding.ogg", "hash": "h"}}'
        manifest = Manifest.from_json(raw)
        assert "sounds/ding.ogg" in manifest

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2, 3]",
        '{"a.txt": {"hash": "missing name"}}',
    ])
    def test_bad_content_raises_parse_error(self, raw):
        with pytest.raises(ManifestParseError, match="failed to parse local manifest"):
            Manifest.from_json(raw)

    def test_to_json_is_sorted_and_readable(self):
        manifest = make_manifest({"b.txt": "h2", "a.txt": "h1"})
        text = manifest.to_json().decode()
        assert text.index('"a.txt"') < text.index('"b.txt"')
        assert text.endswith("\n")
        assert orjson.loads(text)["a.txt"]["hash"] == "h1"

    def test_records_are_immutable(self):
        record = FileRecord(name="a.txt", hash="h1")
        with pytest.raises(Exception):
            record.hash = "h2"


class TestManifestStore:
    def test_load_missing_manifest(self, install_root):
        store = ManifestStore(install_root)
        assert not store.exists()
        with pytest.raises(ManifestNotFoundError):
            store.load_local()

    def test_missing_manifest_is_a_file_not_found(self, install_root):
        with pytest.raises(FileNotFoundError):
            ManifestStore(install_root).load_local()

    def test_corrupt_manifest(self, install_root):
        (install_root / ".manifest").write_text("{broken")
        with pytest.raises(ManifestParseError):
            ManifestStore(install_root).load_local()

    def test_manifest_that_is_not_utf8(self, install_root):
        (install_root / ".manifest").write_bytes(b"\xff\xfe{garbage")
        with pytest.raises(ManifestParseError, match="failed to parse local manifest"):
            ManifestStore(install_root).load_local()

    def test_save_filters_to_files_on_disk(self, install_root):
        write_files(install_root, {"a.txt": b"a", "dir/b.txt": b"b"})
        manifest = make_manifest({"a.txt": "h1", "dir/b.txt": "h2", "gone.txt": "h3"})

        written = ManifestStore(install_root).save(manifest)

        assert set(written) == {"a.txt", "dir/b.txt"}
        on_disk = orjson.loads((install_root / ".manifest").read_bytes())
        assert set(on_disk) == {"a.txt", "dir/b.txt"}

    def test_round_trip(self, install_root):
        write_files(install_root, {"a.txt": b"a", "b.txt": b"b"})
        manifest = make_manifest({"a.txt": "h1", "b.txt": "h2", "c.txt": "h3"})
        store = ManifestStore(install_root)

        store.save(manifest)
        loaded = store.load_local()

        assert loaded == Manifest(entries={
            k: v for k, v in manifest.entries.items() if k != "c.txt"
        })

    def test_save_replaces_previous_manifest(self, install_root):
        write_files(install_root, {"a.txt": b"a", "b.txt": b"b"})
        store = ManifestStore(install_root)
        store.save(make_manifest({"a.txt": "h1", "b.txt": "h2"}))
        store.save(make_manifest({"b.txt": "h3"}))

        assert set(store.load_local()) == {"b.txt"}
        assert not list(install_root.glob(".manifest.*.tmp"))

    def test_save_drops_entries_outside_root(self, install_root, tmp_path):
        (tmp_path / "outside.txt").write_text("x")
        written = ManifestStore(install_root).save(make_manifest({"../outside.txt": "h"}))
        assert len(written) == 0

    def test_save_matches_files_case_insensitively(self, install_root):
        write_files(install_root, {"MUSHclient.exe": b"x"})
        written = ManifestStore(install_root).save(make_manifest({"mushclient.exe": "h"}))
        assert "mushclient.exe" in written


class TestShouldExclude:
    @pytest.mark.parametrize("path", [
        ".gitignore",
        ".github/workflows/release.yml",
        ".git",
        ".manifest",
        ".updater-excludes",
        "version.json",
        "mushclient.ini",
        "MUSHclient_prefs.sqlite",
        "updater.exe",
        "worlds/plugin/state/x.xml",
        "worlds/Miriani.mcl",
    ])
    def test_builtin_exclusions(self, install_root, path):
        assert ManifestStore(install_root).should_exclude(path)

    @pytest.mark.parametrize("path", ["MUSHclient.exe", "scripts/main.lua", "worlds/plugins/x.xml"])
    def test_regular_files(self, install_root, path):
        assert not ManifestStore(install_root).should_exclude(path)


class TestBuildRemoteManifest:
    def test_blobs_only_with_urls(self, install_root):
        tree = [
            TreeItem(path="scripts", type="tree", sha="t1"),
            TreeItem(path="scripts/main.lua", type="blob", sha="b1"),
            TreeItem(path=".gitignore", type="blob", sha="b2"),
            TreeItem(path="MUSHclient.exe", type="blob", sha="b3"),
        ]
        manifest = ManifestStore(install_root).build_remote_manifest(
            "v1.0.00", tree, lambda ref, path: f"https://raw.test/{ref}/{path}"
        )

        assert set(manifest) == {"scripts/main.lua", "MUSHclient.exe"}
        record = manifest.get("scripts/main.lua")
        assert record.hash == "b1"
        assert record.url == "https://raw.test/v1.0.00/scripts/main.lua"
