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
Detached, ASCII-armored signatures via GnuPG.

The signature is advisory; nothing in this package verifies it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ...config.constants import AirgapConstants
from .base import CapabilityOutcome, CapabilityResult, ExternalCapability

logger = logging.getLogger(__name__)


class GpgSigner(ExternalCapability):
    """Signs a file, writing ``<file>.asc`` next to it."""

    executables = ("gpg",)

    def __init__(self, key_id: str | None = None, timeout: float | None = None):
        super().__init__("gpg_sign", timeout=timeout)
        self.key_id = key_id or None

    def signature_path(self, target: Path) -> Path:
        return target.with_name(target.name + AirgapConstants.SIGNATURE_SUFFIX)

    def sign(self, target: Path) -> CapabilityResult:
        """
        Produce a detached armored signature for *target*.

        Without a key id gpg signs with its default secret key.

        Returns:
            SUCCESS with ``artifact`` set, SOFT_FAILURE, or UNAVAILABLE
        """
        exe = self.resolve_executable()
        if exe is None:
            return self.unavailable()

        argv = [exe, "--batch", "--yes"]
        if self.key_id:
            argv += ["--local-user", self.key_id]
        argv += ["--armor", "--detach-sign", str(target)]

        proc = self._run(argv)
        if isinstance(proc, CapabilityResult):
            return proc

        sig = self.signature_path(target)
        if proc.returncode != 0 or not sig.exists():
            return CapabilityResult(
                CapabilityOutcome.SOFT_FAILURE,
                f"gpg signing failed (code={proc.returncode}); bundle left unsigned.",
                detail=proc.stderr.strip(),
            )
        return CapabilityResult(CapabilityOutcome.SUCCESS, f"Signature: {sig}", artifact=sig)
