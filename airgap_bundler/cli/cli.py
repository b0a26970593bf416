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

"""Command-line interface for the Airgap Bundler."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable
from pathlib import Path

from ..config.config import Config
from ..config.constants import AirgapConstants
from ..core.capabilities.hashing import HASH_BACKENDS
from ..core.capability_factory import build_capabilities, build_hasher, describe_capabilities
from ..core.exceptions import BundlerError, MalwareDetectedError, PolicyError
from ..core.models import BundleResult, VerificationResult
from ..core.packager import BundlePackager
from ..core.policy import BundlePolicy
from ..core.reporters.json_reporter import JSONReporter
from ..core.reporters.markdown_reporter import MarkdownReporter
from ..core.verifier import BundleVerifier

logger = logging.getLogger("airgap_bundler.cli")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _configure_logging(args: argparse.Namespace) -> None:
    """Send warnings (and, with --verbose, progress detail) to stderr."""
    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.WARNING, format="[!] %(message)s", stream=sys.stderr)


def _load_config(args: argparse.Namespace) -> Config:
    env_file = getattr(args, "env_file", None)
    if env_file:
        return Config.from_file(Path(env_file))
    return Config.from_env()


def _load_policy(args: argparse.Namespace, config: Config) -> BundlePolicy:
    """Load the bundle policy from ``--policy``, the config, or defaults."""
    policy_path = getattr(args, "policy", None) or config.policy_path
    if not policy_path:
        return BundlePolicy.default()
    policy = BundlePolicy.from_yaml(policy_path)
    logger.info("Using bundle policy: %s (%s)", policy_path, policy.policy_name)
    return policy


def _make_status_printer(args: argparse.Namespace) -> Callable[[str], None]:
    """Return a printer that sends to stderr when JSON output is active."""
    is_json = getattr(args, "format", "summary") == "json"

    def _print(msg: str) -> None:
        print(f"[*] {msg}", file=sys.stderr if is_json else sys.stdout)

    return _print


def _format_output(args: argparse.Namespace, result: BundleResult | VerificationResult) -> str:
    fmt = getattr(args, "format", "summary")
    if fmt == "json":
        return JSONReporter(pretty=not getattr(args, "compact", False)).generate_report(result)
    if fmt == "markdown":
        return MarkdownReporter(detailed=True).generate_report(result)
    if isinstance(result, VerificationResult):
        return _generate_verification_summary(result)
    return _generate_bundle_summary(result)


def _write_output(args: argparse.Namespace, output: str) -> None:
    """Write *output* to the report file or stdout."""
    report = getattr(args, "report", None)
    if report:
        with open(report, "w", encoding="utf-8") as fh:
            fh.write(output)
        print(f"Report saved to: {report}", file=sys.stderr)
    else:
        print(output)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def bundle_command(args: argparse.Namespace) -> int:
    """Handle the ``bundle`` command."""
    config = _load_config(args)
    status = _make_status_printer(args)

    try:
        policy = _load_policy(args, config)
    except FileNotFoundError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR
    except PolicyError as e:
        print(f"ERROR: Error loading policy file: {e}", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR

    max_size_mb = args.max_size_mb if args.max_size_mb is not None else config.max_size_mb
    if max_size_mb is not None and max_size_mb < 0:
        print("ERROR: --max-size-mb must not be negative", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR
    timeout = args.tool_timeout if args.tool_timeout is not None else config.tool_timeout_seconds
    policy = policy.with_overrides(
        include_extensions=args.include_ext,
        allow_binaries=True if args.allow_binaries else None,
        max_size_mb=max_size_mb,
        timeout_seconds=timeout,
    )

    try:
        capabilities = build_capabilities(
            policy,
            strip_exif=args.strip_exif,
            scan=args.clamav,
            sign=args.sign,
            gpg_key=args.gpg_key or config.gpg_key,
            hash_backend=args.hash_backend or config.hash_backend,
        )
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR

    packager = BundlePackager(
        policy,
        org=args.org or config.org,
        label=args.label or config.label,
        capabilities=capabilities,
        status=status,
    )

    try:
        result = packager.package(args.src, args.out or config.output_dir)
    except MalwareDetectedError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        if e.report:
            print(e.report, file=sys.stderr)
        return AirgapConstants.EXIT_ERROR
    except BundlerError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR

    _write_output(args, _format_output(args, result))
    return AirgapConstants.EXIT_OK


def verify_command(args: argparse.Namespace) -> int:
    """Handle the ``verify`` command.

    Exit codes: 0 verified, 2 findings present, 1 operational error.
    """
    if args.tar and args.bundle_dir:
        print("ERROR: give either a bundle directory or --tar, not both", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR
    if not args.tar and not args.bundle_dir:
        print("ERROR: a bundle directory or --tar ARCHIVE is required", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR

    config = _load_config(args)
    status = _make_status_printer(args)
    try:
        hasher = build_hasher(backend=args.hash_backend or config.hash_backend)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR
    verifier = BundleVerifier(allow_extras=args.allow_extras, hasher=hasher, status=status)

    try:
        if args.tar:
            result = verifier.verify_archive(args.tar)
        else:
            result = verifier.verify_directory(args.bundle_dir)
    except BundlerError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR

    _write_output(args, _format_output(args, result))
    return AirgapConstants.EXIT_OK if result.verified else AirgapConstants.EXIT_FINDINGS


def generate_policy_command(args: argparse.Namespace) -> int:
    """Handle the ``generate-policy`` command."""
    output_path = Path(args.output)
    try:
        BundlePolicy.default().to_yaml(output_path)
    except OSError as e:
        print(f"Error generating policy: {e}", file=sys.stderr)
        return AirgapConstants.EXIT_ERROR
    print(f"Generated bundle policy: {output_path}\n")
    print("Edit the file to customise, then use:")
    print(f"  airgap-bundler bundle --src ./export --policy {output_path}")
    return AirgapConstants.EXIT_OK


def list_tools_command(args: argparse.Namespace) -> int:
    """Handle the ``list-tools`` command."""
    config = _load_config(args)
    print("External capabilities:\n")
    for i, (name, available, detail) in enumerate(describe_capabilities(config.hash_backend), 1):
        ok = "[OK]" if available else "[MISSING]"
        print(f"  {i}. {name} {ok}")
        print(f"     {detail}")
    return AirgapConstants.EXIT_OK


# ---------------------------------------------------------------------------
# Summary formatters
# ---------------------------------------------------------------------------


def _generate_bundle_summary(result: BundleResult) -> str:
    lines = [
        "=" * 60,
        f"Bundle: {result.basename}",
        "=" * 60,
        f"Archive: {result.archive_path}",
        f"Files: {result.file_count} ({result.total_bytes} bytes)",
        f"Skipped (oversize): {len(result.skipped_oversize)}",
        f"Signature: {result.signature_path or 'none'}",
        f"Steps: {', '.join(result.steps_applied)}",
        f"Duration: {result.duration_seconds:.2f}s",
    ]
    if result.warnings:
        lines.append(f"Warnings: {len(result.warnings)}")
    return "\n".join(lines)


def _generate_verification_summary(result: VerificationResult) -> str:
    lines = [f"Files checked: {result.files_checked}"]
    lines.extend(f"  {finding.message}" for finding in result.findings)
    if result.verified:
        lines.append("[OK] Manifest verified successfully.")
    else:
        lines.append(f"[FAIL] Verification failed: {len(result.findings)} finding(s).")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Shared argparse helpers
# ---------------------------------------------------------------------------


def _add_output_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=["summary", "json", "markdown"],
        default="summary",
        help="Output format (default: summary)",
    )
    parser.add_argument("--report", metavar="PATH", help="Write the report to PATH instead of stdout")
    parser.add_argument("--compact", action="store_true", help="Compact JSON output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    parser.add_argument("--env-file", metavar="PATH", help="Load AIRGAP_BUNDLER_* settings from a .env file")
    parser.add_argument("--hash-backend", choices=HASH_BACKENDS, default=None, help="SHA-256 implementation")


def _add_verify_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("bundle_dir", nargs="?", help="Path to an extracted bundle directory")
    parser.add_argument("--tar", metavar="ARCHIVE", help="Verify a .tar.gz bundle (extracted to a temp dir)")
    parser.add_argument("--allow-extras", action="store_true", help="Do not fail on files missing from the manifest")
    _add_output_flags(parser)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Airgap Bundler - hardened packaging and verification for air-gapped transfers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  airgap-bundler bundle --src ./export --out ./dist --org "RaptorTeam" \\
      --label "CUI" --include-ext "pdf,txt,md,png,jpg" --strip-exif --clamav
  airgap-bundler verify --tar ./dist/raptorteam_cui_2024-01-31_120000.tar.gz
  airgap-bundler verify /path/to/extracted/bundle --allow-extras
  airgap-bundler generate-policy -o transfer_policy.yaml
  airgap-bundler list-tools
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {AirgapConstants.VERSION}")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # -- bundle ------------------------------------------------------------
    b_p = subparsers.add_parser("bundle", help="Package a directory into a verifiable bundle")
    b_p.add_argument("--src", required=True, help="Source directory to collect from")
    b_p.add_argument("--out", help=f"Output directory (default: {AirgapConstants.DEFAULT_OUTPUT_DIR})")
    b_p.add_argument("--org", help="Org/lab/project name for bundle tag")
    b_p.add_argument("--label", help=f"Marking/classification label (default: {AirgapConstants.DEFAULT_LABEL})")
    b_p.add_argument(
        "--include-ext",
        metavar="a,b,c",
        help=f"Whitelist extensions (no dots). Default: {','.join(AirgapConstants.DEFAULT_INCLUDE_EXTENSIONS)}",
    )
    b_p.add_argument(
        "--allow-binaries",
        action="store_true",
        help=f"Permit {','.join('.' + e for e in AirgapConstants.BINARY_EXTENSIONS)} in addition to includes",
    )
    b_p.add_argument("--max-size-mb", type=int, metavar="N", help="Skip files larger than N MB (default: 100)")
    b_p.add_argument("--strip-exif", action="store_true", help="Strip EXIF metadata from images (if exiftool exists)")
    b_p.add_argument("--clamav", action="store_true", help="Run ClamAV scan (if clamscan exists)")
    b_p.add_argument("--sign", action="store_true", help="GPG-detached sign the bundle")
    b_p.add_argument("--gpg-key", metavar="KEY", help="GPG key to use for signing")
    b_p.add_argument("--policy", metavar="PATH", help="Bundle policy YAML (merged over built-in defaults)")
    b_p.add_argument("--tool-timeout", type=float, metavar="SECONDS", help="Abandon external tool calls after N s")
    _add_output_flags(b_p)

    # -- verify ------------------------------------------------------------
    v_p = subparsers.add_parser("verify", help="Verify a bundle against its manifest")
    _add_verify_arguments(v_p)

    # -- generate-policy ---------------------------------------------------
    gp_p = subparsers.add_parser("generate-policy", help="Write the default bundle policy YAML")
    gp_p.add_argument("--output", "-o", default="bundle_policy.yaml", help="Output file path")

    # -- list-tools --------------------------------------------------------
    lt_p = subparsers.add_parser("list-tools", help="Show which external tools are available")
    lt_p.add_argument("--env-file", metavar="PATH", help="Load AIRGAP_BUNDLER_* settings from a .env file")

    # -- dispatch ----------------------------------------------------------
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return AirgapConstants.EXIT_ERROR

    _configure_logging(args)

    dispatch = {
        "bundle": bundle_command,
        "verify": verify_command,
        "generate-policy": generate_policy_command,
        "list-tools": list_tools_command,
    }
    handler = dispatch.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return AirgapConstants.EXIT_ERROR


def verify_main(argv: list[str] | None = None) -> int:
    """Entry point for the standalone ``airgap-verify`` command."""
    parser = argparse.ArgumentParser(
        prog="airgap-verify",
        description="Verify the SHA-256 manifest of an extracted bundle directory or a .tar.gz bundle",
    )
    _add_verify_arguments(parser)
    args = parser.parse_args(argv)
    _configure_logging(args)
    return verify_command(args)


if __name__ == "__main__":
    sys.exit(main())
