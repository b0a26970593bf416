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
Airgap Bundler - verifiable, whitelist-only bundles for air-gapped transfer.
"""

try:
    from ._version import __version__
except ImportError:
    __version__ = "0.0.0+unknown"


def __getattr__(name: str):
    """Lazy-load public API symbols on first access.

    Keeps ``python -m airgap_bundler.cli.cli`` from importing the whole
    packaging pipeline before argument parsing.
    """
    _lazy_map = {
        "Config": (".config.config", "Config"),
        "AirgapConstants": (".config.constants", "AirgapConstants"),
        "BundlePolicy": (".core.policy", "BundlePolicy"),
        "BundlePackager": (".core.packager", "BundlePackager"),
        "package_bundle": (".core.packager", "package_bundle"),
        "BundleVerifier": (".core.verifier", "BundleVerifier"),
        "verify_bundle": (".core.verifier", "verify_bundle"),
        "Manifest": (".core.manifest", "Manifest"),
        "ManifestEntry": (".core.manifest", "ManifestEntry"),
        "Finding": (".core.models", "Finding"),
        "FindingKind": (".core.models", "FindingKind"),
        "BundleResult": (".core.models", "BundleResult"),
        "VerificationResult": (".core.models", "VerificationResult"),
    }
    if name in _lazy_map:
        module_path, attr = _lazy_map[name]
        import importlib

        mod = importlib.import_module(module_path, __package__)
        val = getattr(mod, attr)
        # Cache on the module so __getattr__ is only called once per symbol
        globals()[name] = val
        return val
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "BundlePackager",
    "package_bundle",
    "BundleVerifier",
    "verify_bundle",
    "BundlePolicy",
    "Manifest",
    "ManifestEntry",
    "Finding",
    "FindingKind",
    "BundleResult",
    "VerificationResult",
    "Config",
    "AirgapConstants",
]
