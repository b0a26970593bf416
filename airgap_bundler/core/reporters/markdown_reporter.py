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
Markdown format reporter, suitable for attaching to a transfer record.
"""

from ..models import BundleResult, FindingKind, VerificationResult

_KIND_TITLES = {
    FindingKind.MISSING: "Missing files",
    FindingKind.SIZE_MISMATCH: "Size mismatches",
    FindingKind.HASH_MISMATCH: "Hash mismatches",
    FindingKind.EXTRA: "Unexpected extra files",
    FindingKind.UNREADABLE: "Unreadable files",
}


class MarkdownReporter:
    """Generates Markdown format reports."""

    def __init__(self, detailed: bool = True):
        """
        Initialize Markdown reporter.

        Args:
            detailed: If True, list expected/actual values for each finding
        """
        self.detailed = detailed

    def generate_report(self, data: BundleResult | VerificationResult) -> str:
        """
        Generate Markdown report.

        Args:
            data: BundleResult or VerificationResult object

        Returns:
            Markdown string
        """
        if isinstance(data, VerificationResult):
            return self._generate_verification_report(data)
        return self._generate_bundle_report(data)

    def _generate_verification_report(self, result: VerificationResult) -> str:
        lines = []

        lines.append("# Airgap Bundle Verification Report")
        lines.append("")
        if result.source:
            lines.append(f"**Archive:** {result.source}")
        lines.append(f"**Manifest:** {result.manifest_path}")
        lines.append(f"**Status:** {'[OK] VERIFIED' if result.verified else '[FAIL] VERIFICATION FAILED'}")
        lines.append(f"**Files Checked:** {result.files_checked}")
        lines.append(f"**Extras Allowed:** {'yes' if result.allow_extras else 'no'}")
        lines.append(f"**Timestamp:** {result.timestamp.isoformat()}")
        lines.append("")

        if not result.findings:
            lines.append("No discrepancies found.")
            return "\n".join(lines) + "\n"

        lines.append("## Findings")
        lines.append("")
        for kind, title in _KIND_TITLES.items():
            found = result.get_findings_by_kind(kind)
            if not found:
                continue
            lines.append(f"### {title} ({len(found)})")
            lines.append("")
            for finding in found:
                if self.detailed and finding.expected is not None:
                    lines.append(f"- `{finding.path}` (expected `{finding.expected}`, got `{finding.actual}`)")
                else:
                    lines.append(f"- `{finding.path}`")
            lines.append("")

        return "\n".join(lines)

    def _generate_bundle_report(self, result: BundleResult) -> str:
        lines = []

        lines.append("# Airgap Bundle Report")
        lines.append("")
        lines.append(f"**Bundle:** {result.basename}")
        lines.append(f"**Archive:** {result.archive_path}")
        lines.append(f"**Org:** {result.org}")
        lines.append(f"**Label:** {result.label}")
        lines.append(f"**Timestamp:** {result.timestamp}")
        lines.append(f"**Files:** {result.file_count} ({result.total_bytes} bytes)")
        lines.append(f"**Signature:** {result.signature_path or 'none'}")
        lines.append(f"**Steps:** {', '.join(result.steps_applied)}")
        lines.append("")

        if result.warnings:
            lines.append("## Warnings")
            lines.append("")
            for warning in result.warnings:
                lines.append(f"- {warning}")
            lines.append("")

        return "\n".join(lines)
