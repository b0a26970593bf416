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
Bundle verifier: re-derives size and digest of every manifest entry.

Verification never mutates the bundle. Archives are extracted into a
private scratch directory that is removed on every exit path.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import tempfile
from collections.abc import Callable
from pathlib import Path
from types import TracebackType

from ..config.constants import AirgapConstants
from .capabilities.hashing import Sha256Hasher
from .capability_factory import build_hasher
from .exceptions import ArchiveReadError, ManifestNotFoundError
from .manifest import iter_payload_files, read_manifest
from .models import Finding, FindingKind, VerificationResult

logger = logging.getLogger(__name__)

# Never reported as extras, wherever the payload root ends up
_BUNDLE_METADATA_FILES = frozenset({AirgapConstants.MANIFEST_NAME, AirgapConstants.NOTES_NAME})


class ScratchDirectory:
    """Disposable extraction directory, removed on exit even after errors."""

    def __init__(self, prefix: str = "airgap_verify_"):
        self.prefix = prefix
        self.path: Path | None = None

    def __enter__(self) -> Path:
        self.path = Path(tempfile.mkdtemp(prefix=self.prefix))
        logger.debug("Created scratch directory %s", self.path)
        return self.path

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.path is not None:
            shutil.rmtree(self.path, ignore_errors=True)
            logger.debug("Removed scratch directory %s", self.path)
            self.path = None


def resolve_bundle_root(root: str | Path) -> tuple[Path, Path]:
    """
    Locate the manifest and the payload root under *root*.

    The manifest is looked for at ``root/manifest.txt`` and then at
    ``root/payload/manifest.txt``. Files are resolved under ``payload/``
    beside the manifest when that directory exists, otherwise directly
    beside the manifest (flattened layout).

    Returns:
        Tuple of (manifest_path, payload_root)

    Raises:
        ManifestNotFoundError: If neither location holds a manifest
    """
    root = Path(root)
    if not root.is_dir():
        raise ManifestNotFoundError(f"Bundle directory not found: {root}")

    candidates = (root, root / AirgapConstants.PAYLOAD_DIR)
    for base in candidates:
        manifest_path = base / AirgapConstants.MANIFEST_NAME
        if manifest_path.is_file():
            payload = base / AirgapConstants.PAYLOAD_DIR
            return manifest_path, payload if payload.is_dir() else base

    raise ManifestNotFoundError(f"Could not find {AirgapConstants.MANIFEST_NAME} in: {root}")


def _check_member(member: tarfile.TarInfo) -> None:
    name = member.name
    if name.startswith("/") or ".." in Path(name).parts:
        raise ArchiveReadError(f"Archive member escapes the bundle root: {name!r}")
    if member.issym() or member.islnk():
        raise ArchiveReadError(f"Archive contains a link entry: {name!r} -> {member.linkname!r}")
    if not (member.isfile() or member.isdir()):
        raise ArchiveReadError(f"Archive contains a special file: {name!r}")


def extract_archive(archive_path: Path, destination: Path) -> None:
    """
    Extract a bundle archive into *destination*.

    Only regular files and directories with relative, non-escaping names are
    accepted; anything else makes the whole archive unreadable.

    Raises:
        ArchiveReadError: If the archive is missing, corrupt, or unsafe
    """
    if not archive_path.is_file():
        raise ArchiveReadError(f"Bundle not found: {archive_path}")
    if not hasattr(tarfile, "data_filter"):
        raise ArchiveReadError(
            "Safe archive extraction needs tarfile extraction filters (Python 3.10.12, 3.11.4 or newer)"
        )
    try:
        with tarfile.open(archive_path, "r:*") as tf:
            members = tf.getmembers()
            for member in members:
                _check_member(member)
            tf.extractall(destination, members=members, filter="data")
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveReadError(f"Cannot read bundle {archive_path}: {e}") from e


class BundleVerifier:
    """Checks a bundle's payload against its manifest."""

    def __init__(
        self,
        allow_extras: bool = False,
        hasher: Sha256Hasher | None = None,
        status: Callable[[str], None] | None = None,
    ):
        """
        Initialize verifier.

        Args:
            allow_extras: Do not report files present on disk but absent from
                the manifest.
            hasher: SHA-256 capability. If None, uses the automatic backend.
            status: Receives progress lines. Defaults to ``logger.info``.
        """
        self.allow_extras = allow_extras
        self.hasher = hasher or build_hasher()
        self.status = status or logger.info

    def verify_archive(self, archive_path: str | Path) -> VerificationResult:
        """
        Extract *archive_path* to scratch space and verify it.

        Raises:
            ArchiveReadError: If the archive cannot be read or extracted
            ManifestNotFoundError: If the archive holds no manifest
            ManifestParseError: If the manifest is malformed
            HashingUnavailableError: If no SHA-256 backend exists
        """
        archive_path = Path(archive_path)
        self.hasher.require()
        with ScratchDirectory() as scratch:
            self.status(f"Extracting to temp: {scratch}")
            extract_archive(archive_path, scratch)
            result = self.verify_directory(scratch)
        result.source = str(archive_path)
        return result

    def verify_directory(self, root: str | Path) -> VerificationResult:
        """
        Verify an already-extracted bundle rooted at *root*.

        Every entry is checked for existence, size and digest independently.
        All findings are accumulated; nothing short-circuits.

        Raises:
            ManifestNotFoundError: If no manifest can be located
            ManifestParseError: If the manifest is malformed
            HashingUnavailableError: If no SHA-256 backend exists
        """
        self.hasher.require()
        manifest_path, payload_root = resolve_bundle_root(root)
        self.status(f"Verifying manifest: {manifest_path}")
        manifest = read_manifest(manifest_path)

        result = VerificationResult(
            manifest_path=manifest_path,
            payload_root=payload_root,
            allow_extras=self.allow_extras,
        )

        for entry in manifest:
            path = payload_root.joinpath(*entry.relative_path.split("/"))
            if path.is_symlink() or not path.is_file():
                result.findings.append(Finding(FindingKind.MISSING, entry.relative_path))
                result.files_checked += 1
                continue

            try:
                actual_size = path.stat().st_size
                actual_hash = self.hasher.hash_file(path)
            except OSError as e:
                result.findings.append(
                    Finding(FindingKind.UNREADABLE, entry.relative_path, actual=e.strerror or str(e))
                )
                result.files_checked += 1
                continue

            if actual_size != entry.size:
                result.findings.append(
                    Finding(FindingKind.SIZE_MISMATCH, entry.relative_path, str(entry.size), str(actual_size))
                )

            if actual_hash != entry.sha256:
                result.findings.append(
                    Finding(FindingKind.HASH_MISMATCH, entry.relative_path, entry.sha256, actual_hash)
                )

            result.files_checked += 1

        self.status(f"Checked {result.files_checked} files from manifest.")

        if self.allow_extras:
            self.status("Extras allowed by flag.")
        else:
            self.status("Checking for unexpected extra files...")
            listed = manifest.paths()
            for rel, _path in iter_payload_files(payload_root):
                if rel in _BUNDLE_METADATA_FILES or rel in listed:
                    continue
                result.findings.append(Finding(FindingKind.EXTRA, rel))

        for finding in result.findings:
            logger.warning(finding.message)

        return result


def verify_bundle(
    path: str | Path,
    *,
    allow_extras: bool = False,
    hash_backend: str = "auto",
) -> VerificationResult:
    """
    Convenience function: verify a bundle directory or ``.tar.gz`` archive.

    Args:
        path: Extracted bundle directory or archive file
        allow_extras: Tolerate files not listed in the manifest
        hash_backend: SHA-256 backend name

    Returns:
        VerificationResult
    """
    path = Path(path)
    verifier = BundleVerifier(allow_extras=allow_extras, hasher=build_hasher(backend=hash_backend))
    if path.is_dir():
        return verifier.verify_directory(path)
    return verifier.verify_archive(path)
