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
SHA-256 hashing capability.

The in-process ``hashlib`` backend is preferred. Hosts whose Python lacks
SHA-256 (for example restricted FIPS builds) fall back to the coreutils
``sha256sum`` or the Perl ``shasum`` tool, matching what the shell tooling
that produced older bundles used.
"""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
import subprocess
from pathlib import Path

from ..exceptions import BundlerError, HashingUnavailableError
from .base import ExternalCapability

logger = logging.getLogger(__name__)

HASH_BACKENDS = ("auto", "hashlib", "sha256sum", "shasum")

_CHUNK_SIZE = 1024 * 1024
_DIGEST_RE = re.compile(r"^[0-9a-f]{64}\Z")


def _hashlib_has_sha256() -> bool:
    if "sha256" not in hashlib.algorithms_available:
        return False
    try:
        hashlib.sha256()
    except ValueError:
        return False
    return True


class Sha256Hasher(ExternalCapability):
    """Required capability: hex SHA-256 digest of a file."""

    def __init__(self, backend: str = "auto", timeout: float | None = None):
        super().__init__("sha256", timeout=timeout)
        backend = (backend or "auto").lower()
        if backend not in HASH_BACKENDS:
            raise ValueError(f"Unknown hash backend '{backend}'. Available: {', '.join(HASH_BACKENDS)}")
        self.requested_backend = backend
        self.backend: str | None = None
        self._command: list[str] | None = None

    def resolve_backend(self) -> str | None:
        """Pick the backend to use, or None when nothing is available."""
        if self.backend is not None:
            return self.backend

        candidates = (
            ["hashlib", "sha256sum", "shasum"] if self.requested_backend == "auto" else [self.requested_backend]
        )
        for candidate in candidates:
            if candidate == "hashlib":
                if _hashlib_has_sha256():
                    self.backend = "hashlib"
                    return self.backend
                continue
            exe = shutil.which(candidate)
            if exe:
                self.backend = candidate
                self._command = [exe] if candidate == "sha256sum" else [exe, "-a", "256"]
                return self.backend
        return None

    def is_available(self) -> bool:
        return self.resolve_backend() is not None

    def require(self) -> str:
        """Return the backend name, raising when hashing is impossible."""
        backend = self.resolve_backend()
        if backend is None:
            if self.requested_backend == "auto":
                raise HashingUnavailableError("No sha256 tool found (need hashlib sha256, sha256sum or shasum).")
            raise HashingUnavailableError(f"Requested hash backend '{self.requested_backend}' is not available.")
        return backend

    def hash_file(self, path: str | Path) -> str:
        """
        Calculate the SHA-256 digest of a file.

        Args:
            path: Path to the file

        Returns:
            Lowercase hex digest

        Raises:
            HashingUnavailableError: If no backend is available
            BundlerError: If an external hashing tool fails on this file
            OSError: If the file cannot be read
        """
        backend = self.require()
        if backend == "hashlib":
            sha256_hash = hashlib.sha256()
            with open(path, "rb") as f:
                for block in iter(lambda: f.read(_CHUNK_SIZE), b""):
                    sha256_hash.update(block)
            return sha256_hash.hexdigest()

        if self._command is None:
            raise BundlerError(f"No command resolved for hash backend '{backend}'")
        # Hash via stdin so the tool never escapes the file name in its output
        with open(path, "rb") as fh:
            try:
                proc = subprocess.run(
                    [*self._command, "-"],
                    stdin=fh,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    check=False,
                )
            except (subprocess.TimeoutExpired, OSError) as e:
                raise BundlerError(f"{backend} failed for {path}: {e}") from e
        fields = proc.stdout.split()
        if proc.returncode != 0 or not fields:
            raise BundlerError(f"{backend} failed for {path}: {proc.stderr.strip() or f'exit {proc.returncode}'}")
        digest = fields[0].lower()
        if not _DIGEST_RE.match(digest):
            raise BundlerError(f"{backend} returned an unexpected digest for {path}: {fields[0]!r}")
        return digest
