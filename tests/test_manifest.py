# Copyright 2026 Cisco Systems, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the manifest format shared by the packager and the verifier.
"""

import hashlib
import os

import pytest

from airgap_bundler.core.exceptions import ManifestParseError
from airgap_bundler.core.manifest import (
    Manifest,
    ManifestEntry,
    build_manifest,
    format_manifest,
    iter_payload_files,
    normalize_relative_path,
    parse_manifest,
    read_manifest,
    write_manifest,
)

HASH_A = "a" * 64
HASH_B = "b" * 64


class TestNormalizeRelativePath:
    """Test canonical forward-slash path form."""

    def test_backslash_is_a_name_character(self):
        assert normalize_relative_path("docs/back\\slash.txt") == "docs/back\\slash.txt"

    def test_leading_space_preserved(self):
        assert normalize_relative_path(" lead.txt") == " lead.txt"

    def test_rejects_line_breaks(self):
        with pytest.raises(ValueError, match="line breaks"):
            normalize_relative_path("a\nb.txt")
        with pytest.raises(ValueError, match="line breaks"):
            normalize_relative_path("a\rb.txt")

    def test_strips_dot_and_empty_segments(self):
        assert normalize_relative_path("./docs//./a.txt/") == "docs/a.txt"

    def test_rejects_parent_segments(self):
        with pytest.raises(ValueError, match=r"\.\."):
            normalize_relative_path("docs/../../etc/passwd")

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            normalize_relative_path("./")


class TestFormatManifest:
    """Test the on-disk rendering."""

    def test_header_precedes_records(self):
        manifest = Manifest(entries=[ManifestEntry(HASH_A, 5, "a.txt")])
        text = format_manifest(manifest, org="RaptorTeam", label="CUI", timestamp="2024-01-31_120000")
        lines = text.splitlines()
        assert lines[:7] == [
            "# Airgap Bundler Manifest",
            "# Org: RaptorTeam",
            "# Label: CUI",
            "# Timestamp: 2024-01-31_120000",
            "# Hash: sha-256",
            "#",
            "# Columns: SHA256  SIZE(B)  RELATIVE_PATH",
        ]
        assert lines[7] == f"{HASH_A}  5  a.txt"
        assert text.endswith("\n")

    @pytest.mark.parametrize("name", [" lead.txt", "back\\slash.txt", "dir/ both .md ", "dir\\sub/x.txt"])
    def test_unusual_names_round_trip(self, name):
        manifest = Manifest(entries=[ManifestEntry(HASH_A, 5, name)])
        text = format_manifest(manifest, org="Org", label="L", timestamp="ts")
        assert parse_manifest(text).paths() == {name}

    def test_formatted_text_parses_back(self):
        manifest = Manifest(
            entries=[ManifestEntry(HASH_A, 5, "a.txt"), ManifestEntry(HASH_B, 0, "dir/with space.md")]
        )
        text = format_manifest(manifest, org="Org", label="L", timestamp="ts")
        parsed = parse_manifest(text)
        assert parsed.entries == manifest.entries
        assert parsed.header == {"Org": "Org", "Label": "L", "Timestamp": "ts", "Hash": "sha-256"}


class TestParseManifest:
    """Test strict manifest parsing."""

    def test_comments_and_blank_lines_ignored(self):
        text = f"# comment\n\n   \n{HASH_A}  12  a.txt\n# trailing comment\n"
        manifest = parse_manifest(text)
        assert len(manifest) == 1
        assert manifest.get("a.txt").size == 12

    def test_uppercase_hex_is_lowercased(self):
        manifest = parse_manifest(f"{HASH_A.upper()}  1  a.txt\n")
        assert manifest.entries[0].sha256 == HASH_A

    def test_tab_separated_record_rejected(self):
        with pytest.raises(ManifestParseError, match="line 1"):
            parse_manifest(f"{HASH_A}\t3\ta.txt\n")

    def test_path_taken_verbatim_after_two_spaces(self):
        manifest = parse_manifest(f"{HASH_A}  3   lead.txt\n{HASH_B}  4  trail.txt \n")
        assert [e.relative_path for e in manifest] == [" lead.txt", "trail.txt "]

    def test_unicode_line_separators_stay_in_the_path(self):
        # Only \n ends a record; str.splitlines would also split on these
        name = "a\x0bb\x1c\u2028c.txt"
        manifest = parse_manifest(f"{HASH_A}  3  {name}\n")
        assert manifest.paths() == {name}

    def test_crlf_line_endings(self):
        manifest = parse_manifest(f"# h\r\n{HASH_A}  3  a.txt\r\n")
        assert manifest.paths() == {"a.txt"}

    def test_entries_keep_file_order(self):
        manifest = parse_manifest(f"{HASH_B}  1  z.txt\n{HASH_A}  1  a.txt\n")
        assert [e.relative_path for e in manifest] == ["z.txt", "a.txt"]

    def test_malformed_line_reports_line_number(self):
        text = f"# header\n\n{HASH_A}  1  a.txt\nnot a record\n"
        with pytest.raises(ManifestParseError) as exc:
            parse_manifest(text)
        assert exc.value.line_number == 4
        assert "line 4" in str(exc.value)

    def test_short_digest_rejected(self):
        with pytest.raises(ManifestParseError):
            parse_manifest("abc123  1  a.txt\n")

    def test_missing_size_rejected(self):
        with pytest.raises(ManifestParseError):
            parse_manifest(f"{HASH_A}  a.txt\n")

    def test_negative_size_rejected(self):
        with pytest.raises(ManifestParseError):
            parse_manifest(f"{HASH_A}  -1  a.txt\n")

    def test_parent_segment_rejected(self):
        with pytest.raises(ManifestParseError, match="unsafe path"):
            parse_manifest(f"{HASH_A}  1  ../outside.txt\n")

    def test_absolute_path_rejected(self):
        with pytest.raises(ManifestParseError, match="absolute path"):
            parse_manifest(f"{HASH_A}  1  /etc/passwd\n")

    def test_duplicate_path_rejected(self):
        text = f"{HASH_A}  1  a.txt\n{HASH_B}  1  ./a.txt\n"
        with pytest.raises(ManifestParseError) as exc:
            parse_manifest(text)
        assert exc.value.line_number == 2

    def test_empty_text_is_empty_manifest(self):
        manifest = parse_manifest("")
        assert len(manifest) == 0
        assert manifest.total_bytes == 0

    def test_read_manifest_keeps_carriage_return_handling(self, tmp_path):
        path = tmp_path / "manifest.txt"
        path.write_bytes(f"# h\r\n{HASH_A}  3  a.txt\r\n{HASH_B}  4  b.txt\n".encode())
        assert read_manifest(path).paths() == {"a.txt", "b.txt"}

    def test_read_manifest_rejects_non_utf8(self, tmp_path):
        path = tmp_path / "manifest.txt"
        path.write_bytes(b"\xff\xfe\x00garbage")
        with pytest.raises(ManifestParseError, match="UTF-8"):
            read_manifest(path)


class TestPayloadEnumeration:
    """Test file enumeration and manifest generation."""

    def test_sorted_by_relative_path(self, tmp_path):
        for rel in ["b.txt", "a/z.txt", "a/b.txt", "C.txt"]:
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(rel)
        rels = [rel for rel, _ in iter_payload_files(tmp_path)]
        assert rels == sorted(rels)
        assert rels == ["C.txt", "a/b.txt", "a/z.txt", "b.txt"]

    def test_symlinks_excluded(self, tmp_path):
        (tmp_path / "real.txt").write_text("x")
        os.symlink(tmp_path / "real.txt", tmp_path / "link.txt")
        (tmp_path / "dir").mkdir()
        (tmp_path / "dir" / "inner.txt").write_text("y")
        os.symlink(tmp_path / "dir", tmp_path / "dirlink")
        rels = [rel for rel, _ in iter_payload_files(tmp_path)]
        assert rels == ["dir/inner.txt", "real.txt"]

    def test_build_manifest_hashes_current_bytes(self, tmp_path, hasher):
        (tmp_path / "a.txt").write_bytes(b"hello")
        (tmp_path / "empty.txt").write_bytes(b"")
        manifest = build_manifest(tmp_path, hasher)
        entry = manifest.get("a.txt")
        assert entry.sha256 == hashlib.sha256(b"hello").hexdigest()
        assert entry.size == 5
        assert manifest.get("empty.txt").size == 0
        assert manifest.total_bytes == 5

    def test_write_then_read(self, tmp_path, hasher):
        payload = tmp_path / "payload"
        payload.mkdir()
        (payload / "a.txt").write_text("data")
        manifest = build_manifest(payload, hasher)
        path = tmp_path / "manifest.txt"
        write_manifest(path, manifest, org="Org", label="L", timestamp="ts")
        assert read_manifest(path).entries == manifest.entries
