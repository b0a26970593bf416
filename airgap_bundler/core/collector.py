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
Source tree collection: which files are approved for transfer.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .exceptions import SourceDirectoryError
from .models import CollectedFile, CollectionResult
from .policy import BundlePolicy

logger = logging.getLogger(__name__)


def _representable(relative_path: str) -> bool:
    """Manifest records are UTF-8 lines, so names must encode and hold no line break."""
    if "\n" in relative_path or "\r" in relative_path:
        return False
    try:
        relative_path.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class FileCollector:
    """Selects files from a source tree by extension and size.

    Filtering is by name and size only; file contents are never inspected.
    A file is approved iff its final suffix (case-insensitive) is in the
    policy whitelist and its size does not exceed ``max_size_mb`` MiB.
    """

    def __init__(self, policy: BundlePolicy | None = None):
        """
        Initialize collector.

        Args:
            policy: Bundle policy. If None, loads built-in defaults.
        """
        self.policy = policy or BundlePolicy.default()

    @staticmethod
    def validate_source(source_dir: Path) -> None:
        """Raise SourceDirectoryError unless *source_dir* is a readable directory."""
        if not source_dir.exists():
            raise SourceDirectoryError(f"Source directory not found: {source_dir}")
        if not source_dir.is_dir():
            raise SourceDirectoryError(f"Source path is not a directory: {source_dir}")
        if not os.access(source_dir, os.R_OK | os.X_OK):
            raise SourceDirectoryError(f"Source directory is not readable: {source_dir}")

    def collect(self, source_dir: str | Path) -> CollectionResult:
        """
        Walk *source_dir* and return the approved files.

        Args:
            source_dir: Root of the tree to collect from

        Returns:
            CollectionResult sorted by relative path

        Raises:
            SourceDirectoryError: If source_dir is missing or not a directory
        """
        source_dir = Path(source_dir)
        self.validate_source(source_dir)

        allowed = self.policy.effective_extensions()
        max_bytes = self.policy.max_size_bytes
        excluded_dirs = self.policy.collection.excluded_dirs
        result = CollectionResult(source_dir=source_dir)

        def _on_error(err: OSError) -> None:
            logger.warning("Cannot read %s: %s", err.filename, err.strerror)

        for dirpath, dirnames, filenames in os.walk(source_dir, onerror=_on_error):
            # Prune version control metadata and symlinked directories in place
            dirnames[:] = sorted(
                d for d in dirnames if d not in excluded_dirs and not os.path.islink(os.path.join(dirpath, d))
            )
            for fn in sorted(filenames):
                path = Path(dirpath) / fn
                if path.is_symlink() or not path.is_file():
                    continue

                relative_path = path.relative_to(source_dir).as_posix()
                if not _representable(relative_path):
                    logger.warning("Skipping (name not representable in manifest): %r", relative_path)
                    result.skipped_unrepresentable.append(relative_path)
                    continue

                candidate = CollectedFile(path=path, relative_path=relative_path)
                if candidate.extension not in allowed:
                    result.skipped_extension_count += 1
                    continue

                try:
                    candidate.size_bytes = path.stat().st_size
                except OSError as e:
                    logger.warning("Skipping (unreadable): %s: %s", path, e)
                    continue

                if candidate.size_bytes > max_bytes:
                    logger.warning("Skipping (size>%dMB): %s", self.policy.whitelist.max_size_mb, path)
                    result.skipped_oversize.append(relative_path)
                    continue

                result.files.append(candidate)

        result.files.sort(key=lambda f: f.relative_path)
        logger.info(
            "Collected %d files (%d bytes); %d oversize, %d not whitelisted",
            len(result.files),
            result.total_bytes,
            len(result.skipped_oversize),
            result.skipped_extension_count,
        )
        return result


def collect_files(source_dir: str | Path, policy: BundlePolicy | None = None) -> CollectionResult:
    """
    Convenience function to collect approved files from a source tree.

    Args:
        source_dir: Root of the tree to collect from
        policy: Bundle policy (defaults to the built-in policy)

    Returns:
        CollectionResult
    """
    return FileCollector(policy=policy).collect(source_dir)
