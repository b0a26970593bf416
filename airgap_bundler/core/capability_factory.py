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
Centralized capability construction.

The CLI, the packager fallback and the verifier build their external tools
through this module so that the bundle policy's timeout and the requested
hash backend are applied the same way everywhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .capabilities.antivirus import ClamAVScanner
from .capabilities.base import ExternalCapability
from .capabilities.exif import ExifStripper
from .capabilities.hashing import Sha256Hasher
from .capabilities.signer import GpgSigner
from .policy import BundlePolicy

logger = logging.getLogger(__name__)


@dataclass
class BundleCapabilities:
    """The tools a packaging run will use. ``None`` means the step is off."""

    hasher: Sha256Hasher
    exif: ExifStripper | None = None
    scanner: ClamAVScanner | None = None
    signer: GpgSigner | None = None


def build_hasher(policy: BundlePolicy | None = None, *, backend: str = "auto") -> Sha256Hasher:
    """Build the required hashing capability."""
    timeout = policy.tools.timeout_seconds if policy else None
    return Sha256Hasher(backend=backend, timeout=timeout)


def build_capabilities(
    policy: BundlePolicy,
    *,
    strip_exif: bool = False,
    scan: bool = False,
    sign: bool = False,
    gpg_key: str | None = None,
    hash_backend: str = "auto",
) -> BundleCapabilities:
    """Build the capability set for one packaging run.

    Optional tools are constructed only when their step was requested.
    Availability is probed later, when the step runs, so that a missing tool
    produces a single warning at the right point in the pipeline.

    Returns:
        BundleCapabilities ready to be passed to :class:`BundlePackager`.
    """
    timeout = policy.tools.timeout_seconds
    return BundleCapabilities(
        hasher=build_hasher(policy, backend=hash_backend),
        exif=ExifStripper(timeout=timeout) if strip_exif else None,
        scanner=ClamAVScanner(timeout=timeout) if scan else None,
        signer=GpgSigner(key_id=gpg_key, timeout=timeout) if sign else None,
    )


def describe_capabilities(hash_backend: str = "auto") -> list[tuple[str, bool, str]]:
    """Return ``(name, available, detail)`` for every known capability."""
    hasher = Sha256Hasher(backend=hash_backend)
    backend = hasher.resolve_backend()
    rows: list[tuple[str, bool, str]] = [
        ("sha256", backend is not None, f"backend: {backend}" if backend else "no backend found (required)"),
    ]
    tools: list[ExternalCapability] = [ExifStripper(), ClamAVScanner(), GpgSigner()]
    for tool in tools:
        exe = tool.resolve_executable()
        rows.append((tool.get_name(), exe is not None, exe or f"{', '.join(tool.executables)} not on PATH"))
    return rows
