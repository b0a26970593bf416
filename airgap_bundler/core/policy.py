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
Bundle policy: the static extension/size whitelist applied at packaging time.

A ``BundlePolicy`` captures which file types may cross the boundary, how big
they may be, which directories are never collected and which files count as
images for metadata scrubbing.

Usage
-----
    from airgap_bundler.core.policy import BundlePolicy

    # Load built-in defaults
    policy = BundlePolicy.default()

    # Load an org policy (merges on top of defaults)
    policy = BundlePolicy.from_yaml("transfer_policy.yaml")

    # Dump the current (including default) policy for editing
    policy.to_yaml("generated_policy.yaml")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..config.constants import AirgapConstants
from .exceptions import PolicyError

logger = logging.getLogger(__name__)

_DEFAULT_POLICY_PATH = AirgapConstants.DEFAULT_POLICY_PATH


def normalize_extensions(values: Iterable[str] | str | None) -> set[str]:
    """Normalise an extension list to lowercase names without dots.

    Accepts either an iterable or a comma-separated string such as
    ``"PDF, .txt,md"``.
    """
    if values is None:
        return set()
    if isinstance(values, str):
        values = values.split(",")
    result = set()
    for raw in values:
        ext = str(raw).strip().lstrip(".").lower()
        if ext:
            result.add(ext)
    return result


# ---------------------------------------------------------------------------
# Data classes for each policy section
# ---------------------------------------------------------------------------


@dataclass
class WhitelistPolicy:
    """Extensions and size limit that decide what is approved for transfer."""

    include_extensions: set[str] = field(default_factory=lambda: set(AirgapConstants.DEFAULT_INCLUDE_EXTENSIONS))
    binary_extensions: set[str] = field(default_factory=lambda: set(AirgapConstants.BINARY_EXTENSIONS))
    allow_binaries: bool = False
    max_size_mb: int = AirgapConstants.DEFAULT_MAX_SIZE_MB


@dataclass
class CollectionPolicy:
    """Controls source tree traversal."""

    # Directory names pruned wherever they appear (version control metadata)
    excluded_dirs: set[str] = field(default_factory=lambda: set(AirgapConstants.EXCLUDED_DIRS))


@dataclass
class ScrubPolicy:
    """Controls metadata stripping."""

    image_extensions: set[str] = field(default_factory=lambda: set(AirgapConstants.IMAGE_EXTENSIONS))


@dataclass
class ToolsPolicy:
    """Controls external tool invocation."""

    timeout_seconds: float | None = None


@dataclass
class BundlePolicy:
    """Complete bundle policy."""

    policy_name: str = "default"
    policy_version: str = "1.0"
    whitelist: WhitelistPolicy = field(default_factory=WhitelistPolicy)
    collection: CollectionPolicy = field(default_factory=CollectionPolicy)
    scrub: ScrubPolicy = field(default_factory=ScrubPolicy)
    tools: ToolsPolicy = field(default_factory=ToolsPolicy)

    # -----------------------------------------------------------------------
    # Derived values
    # -----------------------------------------------------------------------

    @property
    def max_size_bytes(self) -> int:
        return self.whitelist.max_size_mb * 1024 * 1024

    def effective_extensions(self) -> set[str]:
        """Return every extension approved for transfer."""
        exts = set(self.whitelist.include_extensions)
        if self.whitelist.allow_binaries:
            exts |= self.whitelist.binary_extensions
        return exts

    def is_image(self, relative_path: str) -> bool:
        name = relative_path.rsplit("/", 1)[-1]
        if "." not in name:
            return False
        return name.rsplit(".", 1)[-1].lower() in self.scrub.image_extensions

    def with_overrides(
        self,
        *,
        include_extensions: Iterable[str] | str | None = None,
        allow_binaries: bool | None = None,
        max_size_mb: int | None = None,
        timeout_seconds: float | None = None,
    ) -> BundlePolicy:
        """Return a copy of this policy with command-line overrides applied."""
        d = self._to_dict()
        if include_extensions is not None:
            d["whitelist"]["include_extensions"] = sorted(normalize_extensions(include_extensions))
        if allow_binaries is not None:
            d["whitelist"]["allow_binaries"] = allow_binaries
        if max_size_mb is not None:
            d["whitelist"]["max_size_mb"] = max_size_mb
        if timeout_seconds is not None:
            d["tools"]["timeout_seconds"] = timeout_seconds
        return self._from_dict(d)

    # -----------------------------------------------------------------------
    # Construction helpers
    # -----------------------------------------------------------------------

    @classmethod
    def default(cls) -> BundlePolicy:
        """Load the built-in default policy that ships with the package."""
        return cls._from_dict(cls._load_default_raw())

    @classmethod
    def from_yaml(cls, path: str | Path) -> BundlePolicy:
        """
        Load a policy from a YAML file.

        The YAML is merged on top of the built-in defaults so that users
        only need to specify the sections they want to override.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Policy file not found: {path}")

        try:
            with open(path, encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise PolicyError(f"Invalid YAML in policy file {path}: {e}") from e

        if not isinstance(raw, dict):
            raise PolicyError(f"Policy file {path} must contain a mapping at the top level")

        merged = cls._deep_merge(cls._load_default_raw(), raw)
        policy = cls._from_dict(merged)
        logger.debug("Loaded bundle policy %s from %s", policy.policy_name, path)
        return policy

    def to_yaml(self, path: str | Path) -> None:
        """Dump the full policy to a YAML file for editing."""
        data = self._to_dict()
        with open(path, "w", encoding="utf-8") as fh:
            fh.write("# Airgap Bundler – Bundle Policy\n")
            fh.write("# Only include sections you want to override; omitted sections\n")
            fh.write("# will use the built-in defaults.\n\n")
            yaml.dump(data, fh, default_flow_style=False, sort_keys=False, width=120)

    # -----------------------------------------------------------------------
    # Internal parsing
    # -----------------------------------------------------------------------

    @classmethod
    def _load_default_raw(cls) -> dict[str, Any]:
        if _DEFAULT_POLICY_PATH.exists():
            with open(_DEFAULT_POLICY_PATH, encoding="utf-8") as fh:
                return yaml.safe_load(fh) or {}
        return {}

    @staticmethod
    def _deep_merge(base: dict, override: dict) -> dict:
        """Recursively merge *override* into *base*.

        Lists in the override replace the base list so an org can narrow the
        whitelist without repeating every entry.
        """
        result = dict(base)
        for key, val in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(val, dict):
                result[key] = BundlePolicy._deep_merge(result[key], val)
            else:
                result[key] = val
        return result

    @classmethod
    def _from_dict(cls, d: dict[str, Any]) -> BundlePolicy:
        wl = d.get("whitelist") or {}
        co = d.get("collection") or {}
        sc = d.get("scrub") or {}
        tl = d.get("tools") or {}

        defaults = WhitelistPolicy()
        try:
            max_size_mb = int(wl.get("max_size_mb", defaults.max_size_mb))
        except (TypeError, ValueError) as e:
            raise PolicyError(f"whitelist.max_size_mb must be an integer: {e}") from e
        if max_size_mb < 0:
            raise PolicyError("whitelist.max_size_mb must not be negative")

        timeout = tl.get("timeout_seconds")
        if timeout is not None:
            try:
                timeout = float(timeout)
            except (TypeError, ValueError) as e:
                raise PolicyError(f"tools.timeout_seconds must be a number: {e}") from e

        return cls(
            policy_name=str(d.get("policy_name", "default")),
            policy_version=str(d.get("policy_version", "1.0")),
            whitelist=WhitelistPolicy(
                include_extensions=normalize_extensions(wl.get("include_extensions", defaults.include_extensions)),
                binary_extensions=normalize_extensions(wl.get("binary_extensions", defaults.binary_extensions)),
                allow_binaries=bool(wl.get("allow_binaries", False)),
                max_size_mb=max_size_mb,
            ),
            collection=CollectionPolicy(
                excluded_dirs=set(co.get("excluded_dirs", AirgapConstants.EXCLUDED_DIRS)),
            ),
            scrub=ScrubPolicy(
                image_extensions=normalize_extensions(sc.get("image_extensions", AirgapConstants.IMAGE_EXTENSIONS)),
            ),
            tools=ToolsPolicy(timeout_seconds=timeout),
        )

    def _to_dict(self) -> dict[str, Any]:
        return {
            "policy_name": self.policy_name,
            "policy_version": self.policy_version,
            "whitelist": {
                "include_extensions": sorted(self.whitelist.include_extensions),
                "binary_extensions": sorted(self.whitelist.binary_extensions),
                "allow_binaries": self.whitelist.allow_binaries,
                "max_size_mb": self.whitelist.max_size_mb,
            },
            "collection": {
                "excluded_dirs": sorted(self.collection.excluded_dirs),
            },
            "scrub": {
                "image_extensions": sorted(self.scrub.image_extensions),
            },
            "tools": {
                "timeout_seconds": self.tools.timeout_seconds,
            },
        }
