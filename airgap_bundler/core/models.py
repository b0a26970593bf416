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
Data models for bundle packaging and verification results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class FindingKind(str, Enum):
    """Kinds of discrepancy the verifier can report."""

    MISSING = "missing"
    SIZE_MISMATCH = "size_mismatch"
    HASH_MISMATCH = "hash_mismatch"
    EXTRA = "extra"
    UNREADABLE = "unreadable"


@dataclass
class Finding:
    """A single discrepancy between the manifest and the payload on disk."""

    kind: FindingKind
    path: str
    expected: str | None = None
    actual: str | None = None

    @property
    def message(self) -> str:
        """Human-readable one-line description."""
        if self.kind == FindingKind.MISSING:
            return f"Missing file: {self.path}"
        if self.kind == FindingKind.SIZE_MISMATCH:
            return f"Size mismatch: {self.path} (expected {self.expected}, got {self.actual})"
        if self.kind == FindingKind.HASH_MISMATCH:
            return f"Hash mismatch: {self.path}"
        if self.kind == FindingKind.UNREADABLE:
            return f"Unreadable file: {self.path} ({self.actual})"
        return f"Extra file not in manifest: {self.path}"

    def to_dict(self) -> dict[str, Any]:
        """Convert finding to dictionary."""
        return {
            "kind": self.kind.value,
            "path": self.path,
            "expected": self.expected,
            "actual": self.actual,
            "message": self.message,
        }


@dataclass
class CollectedFile:
    """A source file approved for transfer."""

    path: Path
    relative_path: str  # POSIX form, relative to the source root
    size_bytes: int = 0

    @property
    def extension(self) -> str:
        """Lowercase suffix after the last dot, without the dot."""
        name = self.relative_path.rsplit("/", 1)[-1]
        if "." not in name:
            return ""
        return name.rsplit(".", 1)[-1].lower()


@dataclass
class CollectionResult:
    """Files selected from a source tree, plus what was left behind."""

    source_dir: Path
    files: list[CollectedFile] = field(default_factory=list)
    skipped_oversize: list[str] = field(default_factory=list)
    skipped_extension_count: int = 0
    skipped_unrepresentable: list[str] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(f.size_bytes for f in self.files)


@dataclass
class BundleResult:
    """Outcome of one packaging run."""

    archive_path: Path
    basename: str
    org: str
    label: str
    timestamp: str
    file_count: int = 0
    total_bytes: int = 0
    skipped_oversize: list[str] = field(default_factory=list)
    signature_path: Path | None = None
    steps_applied: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def is_signed(self) -> bool:
        return self.signature_path is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert bundle result to dictionary."""
        return {
            "archive_path": str(self.archive_path),
            "basename": self.basename,
            "org": self.org,
            "label": self.label,
            "timestamp": self.timestamp,
            "file_count": self.file_count,
            "total_bytes": self.total_bytes,
            "skipped_oversize": list(self.skipped_oversize),
            "signature_path": str(self.signature_path) if self.signature_path else None,
            "steps_applied": list(self.steps_applied),
            "warnings": list(self.warnings),
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class VerificationResult:
    """Outcome of verifying one bundle.

    There is no partial success: any finding fails the whole run.
    """

    manifest_path: Path
    payload_root: Path
    files_checked: int = 0
    findings: list[Finding] = field(default_factory=list)
    allow_extras: bool = False
    source: str | None = None  # archive path when verified from a .tar.gz
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def verified(self) -> bool:
        return not self.findings

    def get_findings_by_kind(self, kind: FindingKind) -> list[Finding]:
        """Get all findings of a specific kind."""
        return [f for f in self.findings if f.kind == kind]

    def to_dict(self) -> dict[str, Any]:
        """Convert verification result to dictionary."""
        return {
            "verified": self.verified,
            "source": self.source,
            "manifest_path": str(self.manifest_path),
            "payload_root": str(self.payload_root),
            "files_checked": self.files_checked,
            "allow_extras": self.allow_extras,
            "findings_count": len(self.findings),
            "findings": [f.to_dict() for f in self.findings],
            "timestamp": self.timestamp.isoformat(),
        }
