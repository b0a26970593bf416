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

"""Airgap Bundler exceptions.

Every fatal condition of the packager and the verifier is raised as a
subclass of BundlerError. Best-effort tool failures are never raised; they
are logged and recorded on the result object. Verification findings are
data, not exceptions.

Example:
    >>> from airgap_bundler.core.verifier import BundleVerifier
    >>> from airgap_bundler.core.exceptions import ManifestNotFoundError
    >>>
    >>> try:
    ...     result = BundleVerifier().verify_directory("path/to/bundle")
    ... except ManifestNotFoundError as e:
    ...     print(f"Not a bundle: {e}")
"""


class BundlerError(Exception):
    """Base exception for all Airgap Bundler errors."""

    pass


class SourceDirectoryError(BundlerError):
    """Raised when the packaging source directory is missing or unreadable."""

    pass


class HashingUnavailableError(BundlerError):
    """Raised when no SHA-256 implementation can be found on the host."""

    pass


class MalwareDetectedError(BundlerError):
    """Raised when the antivirus scan reports infected files.

    This is the only optional step whose failure aborts packaging.
    """

    def __init__(self, message: str, report: str = ""):
        super().__init__(message)
        self.report = report


class PolicyError(BundlerError):
    """Raised when a bundle policy file cannot be loaded."""

    pass


class ManifestNotFoundError(BundlerError):
    """Raised when no manifest.txt can be located under a bundle root."""

    pass


class ManifestParseError(BundlerError):
    """Raised when a manifest line is neither a comment nor a valid record.

    This indicates:
    - Wrong field count or non-hex digest
    - Negative or non-numeric size
    - Absolute path or '..' segment
    - The same relative path listed twice
    """

    def __init__(self, message: str, line_number: int | None = None):
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class ArchiveReadError(BundlerError):
    """Raised when a bundle archive is unreadable, corrupt or unsafe to extract."""

    pass
