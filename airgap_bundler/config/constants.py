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
Constants for Airgap Bundler.

File names and modes in this module are part of the bundle layout shared by
the packager and the verifier. Changing them breaks interoperability with
bundles produced by other conforming tools.
"""

from pathlib import Path

from ..data import DATA_DIR, DEFAULT_POLICY_PATH

try:
    from .._version import __version__ as PACKAGE_VERSION
except Exception:  # pragma: no cover
    PACKAGE_VERSION = "0.0.0-dev"


class AirgapConstants:
    """Constants used throughout the bundler and verifier."""

    VERSION = PACKAGE_VERSION

    # Project paths
    DATA_DIR = DATA_DIR
    DEFAULT_POLICY_PATH = DEFAULT_POLICY_PATH

    # Bundle layout
    PAYLOAD_DIR = "payload"
    MANIFEST_NAME = "manifest.txt"
    NOTES_NAME = "bundle_notes.txt"
    SIGNATURE_SUFFIX = ".asc"
    ARCHIVE_SUFFIX = ".tar.gz"
    PARTIAL_SUFFIX = ".partial"

    # Manifest protocol
    HASH_ALGORITHM = "sha-256"
    HASH_HEX_LENGTH = 64
    MANIFEST_TITLE = "Airgap Bundler Manifest"
    MANIFEST_COLUMNS = "SHA256  SIZE(B)  RELATIVE_PATH"
    FIELD_SEPARATOR = "  "

    # Staged files are owner-write, world-read, never executable
    NORMALIZED_FILE_MODE = 0o644

    # Default values
    DEFAULT_ORG = "Org"
    DEFAULT_LABEL = "UNCLASSIFIED"
    DEFAULT_OUTPUT_DIR = "./dist"
    DEFAULT_MAX_SIZE_MB = 100
    DEFAULT_INCLUDE_EXTENSIONS = (
        "pdf",
        "txt",
        "csv",
        "json",
        "xml",
        "yaml",
        "yml",
        "md",
        "png",
        "jpg",
        "jpeg",
        "gif",
    )
    BINARY_EXTENSIONS = ("bin", "hex")
    IMAGE_EXTENSIONS = ("jpg", "jpeg", "png")
    EXCLUDED_DIRS = (".git", ".svn")
    TIMESTAMP_FORMAT = "%Y-%m-%d_%H%M%S"

    # Exit codes
    EXIT_OK = 0
    EXIT_ERROR = 1
    EXIT_FINDINGS = 2

    @classmethod
    def get_default_policy_path(cls) -> Path:
        """Get path to the built-in bundle policy."""
        return cls.DEFAULT_POLICY_PATH
