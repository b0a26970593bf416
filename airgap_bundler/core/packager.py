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
Bundle packager: collects whitelisted files and emits a verifiable archive.

Pipeline order is fixed: stage -> scrub metadata -> normalize permissions ->
manifest -> antivirus scan -> notes -> archive -> sign. The manifest is
computed after scrubbing and chmod so it always describes the bytes that
actually ship.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tarfile
import tempfile
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from ..config.constants import AirgapConstants
from .capabilities.base import CapabilityOutcome
from .capability_factory import BundleCapabilities, build_capabilities
from .collector import FileCollector
from .exceptions import MalwareDetectedError
from .manifest import Manifest, build_manifest, iter_payload_files, write_manifest
from .models import BundleResult, CollectionResult
from .policy import BundlePolicy

logger = logging.getLogger(__name__)

_SEPARATOR_RE = re.compile(r"[\s/\\]")


def bundle_basename(org: str, label: str, timestamp: str) -> str:
    """Derive the archive base name, e.g. ``raptor_team_cui_2024-01-31_120000``."""
    return _SEPARATOR_RE.sub("_", f"{org}_{label}_{timestamp}").lower()


def _reset_owner(info: tarfile.TarInfo) -> tarfile.TarInfo:
    # Local account names stay on this side of the boundary
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


class BundlePackager:
    """Orchestrates one packaging run."""

    def __init__(
        self,
        policy: BundlePolicy | None = None,
        *,
        org: str = AirgapConstants.DEFAULT_ORG,
        label: str = AirgapConstants.DEFAULT_LABEL,
        capabilities: BundleCapabilities | None = None,
        clock: Callable[[], datetime] | None = None,
        status: Callable[[str], None] | None = None,
    ):
        """
        Initialize packager.

        Args:
            policy: Bundle policy. If None, loads built-in defaults.
            org: Organisation name recorded in the manifest and notes.
            label: Marking/classification label. Free text; only used for the
                bundle name and notes.
            capabilities: External tools to use. If None, only hashing is
                enabled and all optional steps are off.
            clock: Returns the packaging time (injectable for tests).
            status: Receives progress lines. Defaults to ``logger.info``.
        """
        self.policy = policy or BundlePolicy.default()
        self.org = org
        self.label = label
        self.capabilities = capabilities or build_capabilities(self.policy)
        self.collector = FileCollector(policy=self.policy)
        self.clock = clock or datetime.now
        self.status = status or logger.info

    def package(self, source_dir: str | Path, output_dir: str | Path) -> BundleResult:
        """
        Package *source_dir* into a bundle archive under *output_dir*.

        Args:
            source_dir: Tree to collect from (left untouched)
            output_dir: Directory for the archive; created if absent

        Returns:
            BundleResult describing the archive

        Raises:
            SourceDirectoryError: If source_dir is missing or unreadable
            HashingUnavailableError: If no SHA-256 backend exists
            MalwareDetectedError: If the antivirus scan finds infected files
        """
        start_time = time.time()
        source_dir = Path(source_dir)
        output_dir = Path(output_dir)

        self.collector.validate_source(source_dir)
        backend = self.capabilities.hasher.require()
        logger.debug("Using %s for SHA-256", backend)

        output_dir.mkdir(parents=True, exist_ok=True)

        ts = self.clock().strftime(AirgapConstants.TIMESTAMP_FORMAT)
        basename = bundle_basename(self.org, self.label, ts)
        result = BundleResult(
            archive_path=output_dir / f"{basename}{AirgapConstants.ARCHIVE_SUFFIX}",
            basename=basename,
            org=self.org,
            label=self.label,
            timestamp=ts,
        )

        stage_root = Path(tempfile.mkdtemp(prefix="airgap_stage_"))
        try:
            payload_dir = stage_root / AirgapConstants.PAYLOAD_DIR
            payload_dir.mkdir()

            self.status(f"Collecting files from: {source_dir}")
            exts = ",".join(sorted(self.policy.effective_extensions()))
            self.status(f"Whitelist: {exts} (max {self.policy.whitelist.max_size_mb}MB each)")
            collection = self.collector.collect(source_dir)
            result.skipped_oversize = list(collection.skipped_oversize)
            for rel in collection.skipped_oversize:
                result.warnings.append(f"Skipping (size>{self.policy.whitelist.max_size_mb}MB): {rel}")
            for rel in collection.skipped_unrepresentable:
                result.warnings.append(f"Skipping (name not representable in manifest): {rel!r}")
            if not collection.files:
                self._warn(result, f"No whitelisted files found under {source_dir}; bundle payload is empty.")

            self._stage(collection, payload_dir)
            result.steps_applied.append("stage")

            exif_note = self._strip_metadata(payload_dir, result)
            self._normalize_permissions(payload_dir)
            result.steps_applied.append("normalize_permissions")

            manifest_path = stage_root / AirgapConstants.MANIFEST_NAME
            self.status(f"Generating SHA-256 manifest: {manifest_path}")
            manifest = build_manifest(payload_dir, self.capabilities.hasher)
            write_manifest(manifest_path, manifest, org=self.org, label=self.label, timestamp=ts)
            result.steps_applied.append("manifest")
            result.file_count = len(manifest)
            result.total_bytes = manifest.total_bytes

            scan_note = self._scan(payload_dir, result)

            self._write_notes(stage_root / AirgapConstants.NOTES_NAME, result, manifest, exif_note, scan_note)

            self.status(f"Creating bundle: {result.archive_path}")
            self._write_archive(stage_root, result.archive_path)
            result.steps_applied.append("archive")
        finally:
            shutil.rmtree(stage_root, ignore_errors=True)

        self._sign(result)

        result.duration_seconds = time.time() - start_time
        self.status(f"Output: {result.archive_path}")
        return result

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _warn(self, result: BundleResult, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)

    def _stage(self, collection: CollectionResult, payload_dir: Path) -> None:
        """Copy approved files into the payload tree, preserving relative paths."""
        self.status(f"Stage: {payload_dir}")
        for cf in collection.files:
            dest = payload_dir.joinpath(*cf.relative_path.split("/"))
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(cf.path, dest)

    def _strip_metadata(self, payload_dir: Path, result: BundleResult) -> str:
        """Best-effort EXIF removal. Returns a line for the bundle notes."""
        stripper = self.capabilities.exif
        if stripper is None:
            return "Image metadata stripping was not requested."
        if not stripper.is_available():
            self._warn(result, "exiftool not found; skipping EXIF stripping.")
            return "Image metadata stripping was requested but exiftool was not available."

        self.status("Stripping EXIF metadata (images)...")
        stripped = failed = 0
        for rel, path in iter_payload_files(payload_dir):
            if not self.policy.is_image(rel):
                continue
            outcome = stripper.strip(path)
            if outcome.ok:
                stripped += 1
            elif outcome.outcome == CapabilityOutcome.UNAVAILABLE:
                self._warn(result, outcome.message)
                break
            else:
                failed += 1
                self._warn(result, f"EXIF strip failed: {rel}")
                if outcome.detail:
                    logger.debug("exiftool: %s", outcome.detail)
        result.steps_applied.append("exif_strip")
        return f"Image metadata removed with exiftool ({stripped} stripped, {failed} failed)."

    def _normalize_permissions(self, payload_dir: Path) -> None:
        mode = AirgapConstants.NORMALIZED_FILE_MODE
        self.status(f"Normalizing file permissions to {mode:04o}...")
        for _rel, path in iter_payload_files(payload_dir):
            os.chmod(path, mode)

    def _scan(self, payload_dir: Path, result: BundleResult) -> str:
        """Optional antivirus scan; only a positive detection is fatal."""
        scanner = self.capabilities.scanner
        if scanner is None:
            return "Antivirus scan was not requested."
        if not scanner.is_available():
            self._warn(result, "clamscan not found; skipping AV scan.")
            return "Antivirus scan was requested but clamscan was not available."

        self.status("Running ClamAV scan...")
        outcome = scanner.scan(payload_dir)
        if outcome.outcome == CapabilityOutcome.HARD_FAILURE:
            if outcome.detail:
                logger.error("%s", outcome.detail)
            raise MalwareDetectedError(outcome.message, report=outcome.detail)
        if outcome.outcome == CapabilityOutcome.SUCCESS:
            self.status(outcome.message)
            result.steps_applied.append("clamav_scan")
            return "The payload was scanned with ClamAV prior to packaging: clean."
        self._warn(result, outcome.message)
        return f"The ClamAV scan did not complete: {outcome.message}"

    def _write_notes(
        self,
        path: Path,
        result: BundleResult,
        manifest: Manifest,
        exif_note: str,
        scan_note: str,
    ) -> None:
        exts = ", ".join(sorted(self.policy.effective_extensions()))
        notes = f"""Bundle: {result.basename}
Org: {self.org}
Label: {self.label}
Timestamp: {result.timestamp}
Files: {len(manifest)} ({manifest.total_bytes} bytes)

Contents:
- payload/ (files)
- manifest.txt (SHA-256 for each file)
- bundle_notes.txt (this file)

Verification:
  airgap-verify --tar {result.basename}{AirgapConstants.ARCHIVE_SUFFIX}
  or, on an extracted copy: airgap-verify /path/to/extracted/bundle

Operational Notes:
- This bundle includes only whitelisted file types and sizes as configured at packaging time.
- Whitelist: {exts} (max {self.policy.whitelist.max_size_mb}MB each)
- File permissions were normalized to {AirgapConstants.NORMALIZED_FILE_MODE:04o}.
- {exif_note}
- {scan_note}
"""
        with open(path, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(notes)

    def _write_archive(self, stage_root: Path, archive_path: Path) -> None:
        """Write the tar.gz under a temporary name, then move it into place."""
        partial = archive_path.with_name(archive_path.name + AirgapConstants.PARTIAL_SUFFIX)
        try:
            with tarfile.open(partial, "w:gz") as tf:
                for member in (
                    AirgapConstants.PAYLOAD_DIR,
                    AirgapConstants.MANIFEST_NAME,
                    AirgapConstants.NOTES_NAME,
                ):
                    tf.add(stage_root / member, arcname=member, filter=_reset_owner)
            os.replace(partial, archive_path)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

    def _sign(self, result: BundleResult) -> None:
        signer = self.capabilities.signer
        if signer is None:
            return
        if not signer.is_available():
            self._warn(result, "gpg not found; skipping signature.")
            return
        if not signer.key_id:
            self._warn(result, "No --gpg-key provided; gpg will use default key.")

        self.status("Signing bundle (detached, ASCII-armored)...")
        outcome = signer.sign(result.archive_path)
        if outcome.ok:
            result.signature_path = outcome.artifact
            result.steps_applied.append("sign")
            self.status(outcome.message)
        else:
            self._warn(result, outcome.message)
            if outcome.detail:
                logger.debug("gpg: %s", outcome.detail)


def package_bundle(
    source_dir: str | Path,
    output_dir: str | Path,
    *,
    policy: BundlePolicy | None = None,
    org: str = AirgapConstants.DEFAULT_ORG,
    label: str = AirgapConstants.DEFAULT_LABEL,
    strip_exif: bool = False,
    scan: bool = False,
    sign: bool = False,
    gpg_key: str | None = None,
    hash_backend: str = "auto",
) -> BundleResult:
    """
    Convenience function to package a directory with the given options.

    Returns:
        BundleResult for the written archive
    """
    policy = policy or BundlePolicy.default()
    capabilities = build_capabilities(
        policy, strip_exif=strip_exif, scan=scan, sign=sign, gpg_key=gpg_key, hash_backend=hash_backend
    )
    packager = BundlePackager(policy, org=org, label=label, capabilities=capabilities)
    return packager.package(source_dir, output_dir)
