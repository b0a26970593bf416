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
Antivirus scanning via ClamAV's ``clamscan``.

Exit status 0 means clean, 1 means infected files were found, anything else
is a scanner error. Only a positive detection is a hard failure: a scanner
that cannot run must not block a legitimate transfer.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .base import CapabilityOutcome, CapabilityResult, ExternalCapability

logger = logging.getLogger(__name__)

CLAMSCAN_CLEAN = 0
CLAMSCAN_INFECTED = 1


class ClamAVScanner(ExternalCapability):
    """Recursively scans a directory for malware."""

    executables = ("clamscan",)

    def __init__(self, timeout: float | None = None):
        super().__init__("clamav", timeout=timeout)

    def scan(self, directory: Path) -> CapabilityResult:
        """
        Scan *directory* recursively.

        Returns:
            SUCCESS when clean, HARD_FAILURE when infected, SOFT_FAILURE on
            scanner error or timeout, UNAVAILABLE when clamscan is missing
        """
        exe = self.resolve_executable()
        if exe is None:
            return self.unavailable()

        proc = self._run([exe, "-r", "--infected", "--no-summary", str(directory)])
        if isinstance(proc, CapabilityResult):
            return proc

        report = proc.stdout.strip()
        if proc.returncode == CLAMSCAN_CLEAN:
            return CapabilityResult(CapabilityOutcome.SUCCESS, "ClamAV scan clean.")
        if proc.returncode == CLAMSCAN_INFECTED:
            return CapabilityResult(
                CapabilityOutcome.HARD_FAILURE,
                "ClamAV reported infected files. Aborting bundle.",
                detail=report,
            )
        return CapabilityResult(
            CapabilityOutcome.SOFT_FAILURE,
            f"ClamAV encountered errors (code={proc.returncode}); continuing.",
            detail=(proc.stderr or report).strip(),
        )
