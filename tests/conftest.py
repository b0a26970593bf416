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
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest before running tests.
All fixtures defined here are available to every test module without
explicit imports.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from airgap_bundler.core.capabilities.antivirus import ClamAVScanner
from airgap_bundler.core.capabilities.base import CapabilityOutcome, CapabilityResult
from airgap_bundler.core.capabilities.exif import ExifStripper
from airgap_bundler.core.capabilities.hashing import Sha256Hasher
from airgap_bundler.core.capabilities.signer import GpgSigner
from airgap_bundler.core.capability_factory import BundleCapabilities
from airgap_bundler.core.manifest import build_manifest, write_manifest
from airgap_bundler.core.policy import BundlePolicy

FIXED_TIME = datetime(2024, 1, 31, 12, 0, 0)


# ---------------------------------------------------------------------------
# Stub capabilities (no external tools are ever executed in tests)
# ---------------------------------------------------------------------------


class StubExifStripper(ExifStripper):
    """Replaces image bytes with a fixed marker instead of calling exiftool."""

    def __init__(self, available: bool = True, replacement: bytes = b"scrubbed-image"):
        super().__init__()
        self._available = available
        self.replacement = replacement
        self.calls: list[Path] = []

    def is_available(self) -> bool:
        return self._available

    def strip(self, image: Path) -> CapabilityResult:
        self.calls.append(image)
        image.write_bytes(self.replacement)
        return CapabilityResult(CapabilityOutcome.SUCCESS, f"Stripped metadata: {image}")


class StubScanner(ClamAVScanner):
    """Returns a preset outcome for every scan."""

    def __init__(self, outcome: CapabilityOutcome = CapabilityOutcome.SUCCESS, available: bool = True):
        super().__init__()
        self._available = available
        self.outcome = outcome
        self.calls: list[Path] = []

    def is_available(self) -> bool:
        return self._available

    def scan(self, directory: Path) -> CapabilityResult:
        self.calls.append(directory)
        messages = {
            CapabilityOutcome.SUCCESS: "ClamAV scan clean.",
            CapabilityOutcome.HARD_FAILURE: "ClamAV reported infected files. Aborting bundle.",
            CapabilityOutcome.SOFT_FAILURE: "ClamAV encountered errors (code=2); continuing.",
        }
        return CapabilityResult(self.outcome, messages.get(self.outcome, ""), detail="eicar.txt: Eicar FOUND")


class StubSigner(GpgSigner):
    """Writes a fake armored signature next to the target."""

    def __init__(self, key_id: str | None = "ABCDEF01", available: bool = True):
        super().__init__(key_id=key_id)
        self._available = available
        self.signed: list[Path] = []

    def is_available(self) -> bool:
        return self._available

    def sign(self, target: Path) -> CapabilityResult:
        self.signed.append(target)
        sig = self.signature_path(target)
        sig.write_text("-----BEGIN PGP SIGNATURE-----\nstub\n-----END PGP SIGNATURE-----\n")
        return CapabilityResult(CapabilityOutcome.SUCCESS, f"Signature: {sig}", artifact=sig)


# ---------------------------------------------------------------------------
# Factory fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_source_tree(tmp_path: Path) -> Callable[..., Path]:
    """Factory that writes a dict of ``{relative_path: content}`` to disk.

    Usage::

        def test_example(make_source_tree):
            src = make_source_tree({"docs/a.txt": "hello", "img/b.png": b"\\x89PNG"})
    """

    def _make(files: dict[str, str | bytes], name: str = "src") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def make_policy() -> Callable[..., BundlePolicy]:
    """Factory for a default policy with command-line style overrides."""

    def _make(**overrides) -> BundlePolicy:
        return BundlePolicy.default().with_overrides(**overrides)

    return _make


@pytest.fixture
def stubs() -> SimpleNamespace:
    """Stub capability classes: ``stubs.exif``, ``stubs.scanner``, ``stubs.signer``."""
    return SimpleNamespace(exif=StubExifStripper, scanner=StubScanner, signer=StubSigner)


@pytest.fixture
def hasher() -> Sha256Hasher:
    return Sha256Hasher(backend="hashlib")


@pytest.fixture
def make_capabilities(hasher: Sha256Hasher) -> Callable[..., BundleCapabilities]:
    """Factory for a capability set backed by stubs and in-process hashing."""

    def _make(exif=None, scanner=None, signer=None) -> BundleCapabilities:
        return BundleCapabilities(hasher=hasher, exif=exif, scanner=scanner, signer=signer)

    return _make


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_TIME


@pytest.fixture
def make_bundle_dir(tmp_path: Path, hasher: Sha256Hasher) -> Callable[..., Path]:
    """Factory for an extracted bundle directory.

    ``layout`` is one of:

    - ``"standard"``: ``root/manifest.txt`` and ``root/payload/...``
    - ``"nested"``: the bundle sits in ``root/payload/`` (manifest at
      ``root/payload/manifest.txt``, files at ``root/payload/payload/...``)
    - ``"flat"``: ``root/manifest.txt`` with the files directly beside it
    """

    def _make(files: dict[str, str | bytes], layout: str = "standard", name: str = "bundle") -> Path:
        root = tmp_path / name
        base = root / "payload" if layout == "nested" else root
        payload = base if layout == "flat" else base / "payload"
        payload.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = payload / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")

        manifest = build_manifest(payload, hasher)
        write_manifest(base / "manifest.txt", manifest, org="Org", label="TEST", timestamp="2024-01-31_120000")
        (base / "bundle_notes.txt").write_text("Bundle: test\n", encoding="utf-8")
        return root

    return _make
