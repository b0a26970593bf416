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
End-to-end tests for the airgap-bundler command line.

The CLI is run in a subprocess, as a user would run it.
"""

import json
import os
import subprocess
import sys
import tarfile
from pathlib import Path

import pytest

from airgap_bundler.cli.cli import verify_main
from airgap_bundler.core.policy import BundlePolicy


def run_cli(args: list[str], timeout: int = 60) -> tuple[str, str, int]:
    """Run the airgap-bundler CLI and return stdout, stderr, return code."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("AIRGAP_BUNDLER_")}
    cmd = [sys.executable, "-m", "airgap_bundler.cli.cli"] + args
    result = subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        timeout=timeout,
        cwd=Path(__file__).parent.parent,
        env=env,
    )
    return result.stdout, result.stderr, result.returncode


@pytest.fixture
def source_dir(make_source_tree):
    return make_source_tree({"report.pdf": b"%PDF-1.4", "notes/readme.txt": "hello\n", "skip.exe": b"MZ"})


@pytest.fixture
def bundled(source_dir, tmp_path):
    """Package ``source_dir`` and return the archive path."""
    out = tmp_path / "dist"
    _, stderr, rc = run_cli(["bundle", "--src", str(source_dir), "--out", str(out), "--org", "Raptor Team"])
    assert rc == 0, stderr
    archives = list(out.glob("*.tar.gz"))
    assert len(archives) == 1
    return archives[0]


class TestBundleCommand:
    """Test the bundle command."""

    def test_bundle_creates_archive(self, bundled):
        assert bundled.name.startswith("raptor_team_unclassified_")
        with tarfile.open(bundled, "r:gz") as tf:
            names = tf.getnames()
        assert "payload/report.pdf" in names
        assert "payload/skip.exe" not in names

    def test_bundle_status_lines(self, source_dir, tmp_path):
        stdout, _, rc = run_cli(["bundle", "--src", str(source_dir), "--out", str(tmp_path / "o")])
        assert rc == 0
        assert "[*] Collecting files from:" in stdout
        assert "Files: 2" in stdout

    def test_bundle_json_output(self, source_dir, tmp_path):
        stdout, stderr, rc = run_cli(
            ["bundle", "--src", str(source_dir), "--out", str(tmp_path / "o"), "--label", "CUI", "--format", "json"]
        )
        assert rc == 0
        data = json.loads(stdout)
        assert data["label"] == "CUI"
        assert data["file_count"] == 2
        assert "[*] Collecting" in stderr

    def test_include_ext_override(self, source_dir, tmp_path):
        stdout, _, rc = run_cli(
            ["bundle", "--src", str(source_dir), "--out", str(tmp_path / "o"), "--include-ext", "txt"]
            + ["--format", "json"]
        )
        assert rc == 0
        assert json.loads(stdout)["file_count"] == 1

    def test_missing_optional_tools_do_not_fail(self, source_dir, tmp_path):
        empty_path = tmp_path / "emptybin"
        empty_path.mkdir()
        env = {k: v for k, v in os.environ.items() if not k.startswith("AIRGAP_BUNDLER_")}
        env["PATH"] = str(empty_path)
        args = ["bundle", "--src", str(source_dir), "--out", str(tmp_path / "o"), "--strip-exif", "--clamav", "--sign"]
        result = subprocess.run(
            [sys.executable, "-m", "airgap_bundler.cli.cli"] + args,
            capture_output=True,
            text=True,
            timeout=60,
            cwd=Path(__file__).parent.parent,
            env=env,
        )
        assert result.returncode == 0, result.stderr
        assert "[!] exiftool not found; skipping EXIF stripping." in result.stderr
        assert "[!] clamscan not found; skipping AV scan." in result.stderr
        assert "[!] gpg not found; skipping signature." in result.stderr

    def test_missing_source_exits_with_error(self, tmp_path):
        _, stderr, rc = run_cli(["bundle", "--src", str(tmp_path / "missing"), "--out", str(tmp_path / "o")])
        assert rc == 1
        assert "Source directory not found" in stderr

    def test_missing_policy_exits_with_error(self, source_dir, tmp_path):
        _, stderr, rc = run_cli(["bundle", "--src", str(source_dir), "--policy", str(tmp_path / "nope.yaml")])
        assert rc == 1
        assert "Policy file not found" in stderr

    def test_config_from_env_file(self, source_dir, tmp_path):
        env_file = tmp_path / "bundler.env"
        env_file.write_text(f"AIRGAP_BUNDLER_ORG=EnvOrg\nAIRGAP_BUNDLER_OUTPUT_DIR={tmp_path / 'envout'}\n")
        _, stderr, rc = run_cli(["bundle", "--src", str(source_dir), "--env-file", str(env_file)])
        assert rc == 0, stderr
        assert len(list((tmp_path / "envout").glob("envorg_unclassified_*.tar.gz"))) == 1


class TestVerifyCommand:
    """Test the verify command and its exit codes."""

    def test_verify_archive_ok(self, bundled):
        stdout, _, rc = run_cli(["verify", "--tar", str(bundled)])
        assert rc == 0
        assert "[OK] Manifest verified successfully." in stdout

    def test_verify_tampered_directory(self, bundled, tmp_path):
        extracted = tmp_path / "extracted"
        with tarfile.open(bundled, "r:gz") as tf:
            tf.extractall(extracted, filter="data")
        (extracted / "payload" / "notes" / "readme.txt").write_text("HELLO\n")
        (extracted / "payload" / "extra.txt").write_text("smuggled")

        stdout, stderr, rc = run_cli(["verify", str(extracted)])
        assert rc == 2
        assert "[FAIL]" in stdout
        assert "[!] Hash mismatch: notes/readme.txt" in stderr
        assert "[!] Extra file not in manifest: extra.txt" in stderr

        _, _, rc = run_cli(["verify", str(extracted), "--allow-extras"])
        assert rc == 2

    def test_verify_extras_allowed(self, bundled, tmp_path):
        extracted = tmp_path / "extracted"
        with tarfile.open(bundled, "r:gz") as tf:
            tf.extractall(extracted, filter="data")
        (extracted / "payload" / "extra.txt").write_text("smuggled")
        _, _, rc = run_cli(["verify", str(extracted)])
        assert rc == 2
        _, _, rc = run_cli(["verify", str(extracted), "--allow-extras"])
        assert rc == 0

    def test_verify_json(self, bundled):
        stdout, _, rc = run_cli(["verify", "--tar", str(bundled), "--format", "json"])
        assert rc == 0
        data = json.loads(stdout)
        assert data["verified"] is True
        assert data["files_checked"] == 2

    def test_manifest_not_found_is_operational_error(self, tmp_path):
        _, stderr, rc = run_cli(["verify", str(tmp_path)])
        assert rc == 1
        assert "Could not find manifest.txt" in stderr

    def test_unreadable_archive_is_operational_error(self, tmp_path):
        bad = tmp_path / "bad.tar.gz"
        bad.write_bytes(b"not a tarball")
        _, stderr, rc = run_cli(["verify", "--tar", str(bad)])
        assert rc == 1
        assert "ERROR" in stderr

    def test_requires_a_target(self):
        _, stderr, rc = run_cli(["verify"])
        assert rc == 1
        assert "--tar" in stderr

    def test_report_file(self, bundled, tmp_path):
        report = tmp_path / "report.md"
        _, _, rc = run_cli(["verify", "--tar", str(bundled), "--format", "markdown", "--report", str(report)])
        assert rc == 0
        assert "# Airgap Bundle Verification Report" in report.read_text()


class TestVerifyEntryPoint:
    """Test the standalone airgap-verify entry point in-process."""

    def test_verify_main_ok(self, bundled, capsys):
        assert verify_main(["--tar", str(bundled)]) == 0
        assert "[OK] Manifest verified successfully." in capsys.readouterr().out

    def test_verify_main_findings(self, bundled, tmp_path):
        extracted = tmp_path / "extracted"
        with tarfile.open(bundled, "r:gz") as tf:
            tf.extractall(extracted, filter="data")
        (extracted / "payload" / "report.pdf").unlink()
        assert verify_main([str(extracted)]) == 2


class TestOtherCommands:
    def test_generate_policy(self, tmp_path):
        path = tmp_path / "policy.yaml"
        stdout, _, rc = run_cli(["generate-policy", "-o", str(path)])
        assert rc == 0
        assert "Generated bundle policy" in stdout
        assert BundlePolicy.from_yaml(path) == BundlePolicy.default()

    def test_list_tools(self):
        stdout, _, rc = run_cli(["list-tools"])
        assert rc == 0
        assert "sha256 [OK]" in stdout
        for name in ("exif_strip", "clamav", "gpg_sign"):
            assert name in stdout

    def test_no_command_prints_help(self):
        stdout, _, rc = run_cli([])
        assert rc == 1
        assert "usage:" in stdout

    def test_version(self):
        stdout, _, rc = run_cli(["--version"])
        assert rc == 0
        assert "0.1.0" in stdout
