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
Runtime configuration for Airgap Bundler.

Values left unset fall back to ``AIRGAP_BUNDLER_*`` environment variables.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .constants import AirgapConstants

logger = logging.getLogger(__name__)

ENV_PREFIX = "AIRGAP_BUNDLER_"


@dataclass
class Config:
    """
    Configuration for Airgap Bundler.

    CLI flags take precedence over these values; these take precedence over
    the bundle policy defaults.
    """

    # Bundle identity
    org: str | None = None
    label: str | None = None
    output_dir: str | None = None

    # Whitelist overrides
    max_size_mb: int | None = None
    policy_path: str | None = None

    # Signing
    gpg_key: str | None = None

    # External tools
    tool_timeout_seconds: float | None = None
    hash_backend: str = "auto"

    def __post_init__(self):
        """Load configuration from environment variables if not provided."""

        if self.org is None:
            self.org = os.getenv(f"{ENV_PREFIX}ORG", AirgapConstants.DEFAULT_ORG)

        if self.label is None:
            self.label = os.getenv(f"{ENV_PREFIX}LABEL", AirgapConstants.DEFAULT_LABEL)

        if self.output_dir is None:
            self.output_dir = os.getenv(f"{ENV_PREFIX}OUTPUT_DIR", AirgapConstants.DEFAULT_OUTPUT_DIR)

        if self.max_size_mb is None:
            if env_size := os.getenv(f"{ENV_PREFIX}MAX_SIZE_MB"):
                self.max_size_mb = _parse_int(env_size, f"{ENV_PREFIX}MAX_SIZE_MB")

        if self.policy_path is None:
            self.policy_path = os.getenv(f"{ENV_PREFIX}POLICY") or None

        if self.gpg_key is None:
            self.gpg_key = os.getenv(f"{ENV_PREFIX}GPG_KEY") or None

        if self.tool_timeout_seconds is None:
            if env_timeout := os.getenv(f"{ENV_PREFIX}TOOL_TIMEOUT"):
                try:
                    self.tool_timeout_seconds = float(env_timeout)
                except ValueError:
                    logger.warning("Ignoring invalid %sTOOL_TIMEOUT: %r", ENV_PREFIX, env_timeout)

        # Hash backend from environment (only if still at default)
        if self.hash_backend == "auto":
            if env_backend := os.getenv(f"{ENV_PREFIX}HASH_BACKEND"):
                self.hash_backend = env_backend.lower()

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create configuration from environment variables.

        Returns:
            Config instance with values from environment
        """
        return cls()

    @classmethod
    def from_file(cls, config_file: Path) -> "Config":
        """
        Load configuration from a .env file.

        Variables already present in the process environment win over the file.

        Args:
            config_file: Path to .env file

        Returns:
            Config instance
        """
        if config_file.exists():
            load_dotenv(config_file, override=False)
        else:
            logger.debug("Config file %s not found, using environment only", config_file)

        return cls.from_env()


def _parse_int(value: str, name: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring invalid %s: %r", name, value)
        return None
