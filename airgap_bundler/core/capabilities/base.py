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
Base interface for external tools invoked during packaging and verification.

Each tool is probed before use, invoked as a blocking subprocess and its
result classified into one of four outcomes. The packager decides what each
outcome means for the bundle; tools never raise for an ordinary failure.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from abc import ABC
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class CapabilityOutcome(str, Enum):
    """Classification of a single tool invocation."""

    SUCCESS = "success"
    SOFT_FAILURE = "soft_failure"  # warn and continue
    HARD_FAILURE = "hard_failure"  # abort the operation
    UNAVAILABLE = "unavailable"  # tool not installed; step skipped


@dataclass
class CapabilityResult:
    """Result of invoking an external capability."""

    outcome: CapabilityOutcome
    message: str = ""
    detail: str = ""
    artifact: Path | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == CapabilityOutcome.SUCCESS


class ExternalCapability(ABC):
    """Abstract base class for optional external tools."""

    # Candidate executables, first match on PATH wins
    executables: tuple[str, ...] = ()

    def __init__(self, name: str, timeout: float | None = None):
        """
        Initialize capability.

        Args:
            name: Short name used in log messages and result summaries
            timeout: Seconds before an invocation is abandoned. None waits
                indefinitely.
        """
        self.name = name
        self.timeout = timeout
        self._resolved: str | None = None

    def resolve_executable(self) -> str | None:
        """Return the full path of the first executable found on PATH."""
        if self._resolved is None:
            for exe in self.executables:
                found = shutil.which(exe)
                if found:
                    self._resolved = found
                    break
        return self._resolved

    def is_available(self) -> bool:
        """Probe whether the tool can be invoked on this host."""
        return self.resolve_executable() is not None

    def get_name(self) -> str:
        """Get the capability name."""
        return self.name

    def unavailable(self) -> CapabilityResult:
        return CapabilityResult(
            CapabilityOutcome.UNAVAILABLE,
            f"{' / '.join(self.executables) or self.name} not found; skipping {self.name}.",
        )

    def _run(self, argv: list[str]) -> subprocess.CompletedProcess[str] | CapabilityResult:
        """Run *argv* once, without retry.

        Returns the completed process, or a soft-failure result when the
        process could not be started or exceeded the timeout.
        """
        logger.debug("Running %s", " ".join(argv))
        try:
            return subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return CapabilityResult(
                CapabilityOutcome.SOFT_FAILURE,
                f"{self.name} timed out after {self.timeout}s",
            )
        except OSError as e:
            return CapabilityResult(CapabilityOutcome.SOFT_FAILURE, f"{self.name} could not be started: {e}")
