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
Manifest protocol shared by the packager and the verifier.

On disk the manifest is UTF-8 text, one record per payload file::

    <64-hex sha256>  <size in bytes>  <relative/posix/path>

Fields are separated by exactly two spaces and the path runs verbatim to the
end of the line, so names with leading or trailing blanks survive. Only
``/`` separates path segments; a backslash is an ordinary name character.

Lines starting with ``#`` are comments; ``# Key: value`` comments carry the
header metadata. Blank lines are ignored. Any other line that does not match
the record format is rejected: a manifest that cannot be read exactly is not
a trustworthy integrity baseline.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ..config.constants import AirgapConstants
from .exceptions import ManifestParseError

if TYPE_CHECKING:
    from .capabilities.hashing import Sha256Hasher

logger = logging.getLogger(__name__)

_RECORD_RE = re.compile(
    rf"^(?P<hash>[0-9A-Fa-f]{{{AirgapConstants.HASH_HEX_LENGTH}}})  (?P<size>\d+)  (?P<path>.+)$"
)
_HEADER_RE = re.compile(r"^#\s*(?P<key>[A-Za-z][A-Za-z0-9 _-]*?)\s*:\s*(?P<value>.*)$")


def normalize_relative_path(p: str) -> str:
    """Normalise a payload path to its canonical forward-slash form.

    Rules:
    - Reject line breaks (they cannot be represented in a manifest record)
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    if "\n" in p or "\r" in p:
        raise ValueError("Path may not contain line breaks")
    p = p.strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError("Path may not contain '..'")
    if not parts:
        raise ValueError("Path is empty")
    return "/".join(parts)


@dataclass(frozen=True)
class ManifestEntry:
    """One payload file: digest, byte size and relative path."""

    sha256: str
    size: int
    relative_path: str

    def to_line(self) -> str:
        sep = AirgapConstants.FIELD_SEPARATOR
        return f"{self.sha256}{sep}{self.size}{sep}{self.relative_path}"


@dataclass
class Manifest:
    """Ordered manifest entries plus header metadata."""

    entries: list[ManifestEntry] = field(default_factory=list)
    header: dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ManifestEntry]:
        return iter(self.entries)

    def paths(self) -> set[str]:
        return {e.relative_path for e in self.entries}

    def get(self, relative_path: str) -> ManifestEntry | None:
        for entry in self.entries:
            if entry.relative_path == relative_path:
                return entry
        return None

    @property
    def total_bytes(self) -> int:
        return sum(e.size for e in self.entries)


# ---------------------------------------------------------------------------
# Enumeration and generation
# ---------------------------------------------------------------------------


def iter_payload_files(root: Path) -> Iterator[tuple[str, Path]]:
    """Yield ``(relative_path, path)`` for every regular file under *root*.

    Symlinks are neither followed nor reported. Output is sorted by relative
    path so that two runs over identical trees produce identical manifests.
    """
    found: list[tuple[str, Path]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        # prune symlinked directories to avoid walking into them
        dirnames[:] = [d for d in dirnames if not os.path.islink(os.path.join(dirpath, d))]
        for fn in filenames:
            full = Path(dirpath) / fn
            if full.is_symlink() or not full.is_file():
                continue
            rel = full.relative_to(root).as_posix()
            found.append((rel, full))
    found.sort(key=lambda item: item[0])
    return iter(found)


def build_manifest(payload_dir: Path, hasher: Sha256Hasher) -> Manifest:
    """Hash and size every file under *payload_dir* as it is now on disk."""
    entries = []
    for rel, path in iter_payload_files(payload_dir):
        size = path.stat().st_size
        digest = hasher.hash_file(path)
        entries.append(ManifestEntry(sha256=digest, size=size, relative_path=rel))
    logger.debug("Manifest covers %d files under %s", len(entries), payload_dir)
    return Manifest(entries=entries)


def format_manifest(manifest: Manifest, *, org: str, label: str, timestamp: str) -> str:
    """Render *manifest* in the on-disk format, header first."""
    lines = [
        f"# {AirgapConstants.MANIFEST_TITLE}",
        f"# Org: {org}",
        f"# Label: {label}",
        f"# Timestamp: {timestamp}",
        f"# Hash: {AirgapConstants.HASH_ALGORITHM}",
        "#",
        f"# Columns: {AirgapConstants.MANIFEST_COLUMNS}",
    ]
    lines.extend(entry.to_line() for entry in manifest.entries)
    return "\n".join(lines) + "\n"


def write_manifest(path: Path, manifest: Manifest, *, org: str, label: str, timestamp: str) -> None:
    with open(path, "w", encoding="utf-8", newline="\n") as fh:
        fh.write(format_manifest(manifest, org=org, label=label, timestamp=timestamp))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_manifest(text: str) -> Manifest:
    """
    Parse manifest text.

    Args:
        text: Manifest contents

    Returns:
        Parsed Manifest with entries in file order

    Raises:
        ManifestParseError: On the first malformed record, unsafe path, or
            duplicated path
    """
    manifest = Manifest()
    seen: set[str] = set()

    for lineno, raw in enumerate(text.split("\n"), start=1):
        # Tolerate CRLF manifests; names containing CR are never collected
        line = raw[:-1] if raw.endswith("\r") else raw
        if not line.strip():
            continue
        if line.startswith("#"):
            m = _HEADER_RE.match(line)
            if m and m.group("key") != "Columns":
                manifest.header.setdefault(m.group("key"), m.group("value").strip())
            continue

        m = _RECORD_RE.match(line)
        if not m:
            raise ManifestParseError(f"expected '<sha256>  <size>  <path>', got {line!r}", lineno)

        raw_path = m.group("path")
        try:
            rel = normalize_relative_path(raw_path)
        except ValueError as e:
            raise ManifestParseError(f"unsafe path {raw_path!r}: {e}", lineno) from e
        if raw_path.startswith("/"):
            raise ManifestParseError(f"absolute path {raw_path!r}", lineno)
        if rel in seen:
            raise ManifestParseError(f"duplicate path {rel!r}", lineno)
        seen.add(rel)

        manifest.entries.append(
            ManifestEntry(sha256=m.group("hash").lower(), size=int(m.group("size")), relative_path=rel)
        )

    return manifest


def read_manifest(path: Path) -> Manifest:
    """Read and parse a manifest file."""
    try:
        with open(path, encoding="utf-8", newline="") as fh:
            text = fh.read()
    except UnicodeDecodeError as e:
        raise ManifestParseError(f"{path} is not valid UTF-8: {e}") from e
    return parse_manifest(text)
