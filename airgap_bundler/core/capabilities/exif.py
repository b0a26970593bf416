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
EXIF/metadata stripping via exiftool.

Best-effort: a per-file failure is a soft failure and never aborts packaging.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .base import CapabilityOutcome, CapabilityResult, ExternalCapability

logger = logging.getLogger(__name__)


class ExifStripper(ExternalCapability):
    """Removes embedded metadata from an image in place."""

    executables = ("exiftool",)

    def __init__(self, timeout: float | None = None):
        super().__init__("exif_strip", timeout=timeout)

    def strip(self, image: Path) -> CapabilityResult:
        """
        Strip all metadata from *image*, overwriting the original.

        Args:
            image: Staged image file

        Returns:
            SUCCESS, SOFT_FAILURE, or UNAVAILABLE
        """
        exe = self.resolve_executable()
        if exe is None:
            return self.unavailable()

        proc = self._run([exe, "-overwrite_original", "-all=", str(image)])
        if isinstance(proc, CapabilityResult):
            return proc
        if proc.returncode != 0:
            return _soft(proc, f"EXIF strip failed: {image}")
        return CapabilityResult(CapabilityOutcome.SUCCESS, f"Stripped metadata: {image}")


def _soft(proc: subprocess.CompletedProcess[str], message: str) -> CapabilityResult:
    return CapabilityResult(CapabilityOutcome.SOFT_FAILURE, message, detail=(proc.stderr or proc.stdout).strip())
