# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release verification — checks that a target checkout looks fully patched.

A target is considered clean when:
  - running the patch rules over its sources would change nothing
  - no file named by a delete rule is still present
  - the manifest parses and carries every configured entry (and version)

This is the check to run before committing, and after a run that was
interrupted part way, to see what is left to do.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from bindrel.config.schema import ReleaseToolConfig
from bindrel.logging.logger import get_logger
from bindrel.release.errors import ManifestError
from bindrel.release.manifests.manifest import ROOT_SECTION, load_manifest
from bindrel.release.patching.patcher import apply_rules, load_source_files
from bindrel.release.patching.rules import DeleteRule, build_rules

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class VerificationReport:
    """Complete outcome of a target verification."""

    is_valid: bool
    target_dir: str
    checks_passed: list[str] = field(default_factory=list)
    checks_failed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _check_sources_patched(source_dir: Path, config: ReleaseToolConfig) -> tuple[bool, list[str]]:
    """Dry-run the rules; anything they would still change is an error."""
    if not source_dir.is_dir():
        return False, [f"Source directory not found: {source_dir}"]

    rules = build_rules(config.patch)
    files = load_source_files(source_dir, config.locator.file_extension)
    result = apply_rules(files, rules)

    errors: list[str] = []
    for rule in rules:
        if result.applications.get(rule.name, 0) == 0:
            continue
        if isinstance(rule, DeleteRule):
            errors.append(f"Delete rule '{rule.name}' still has {rule.filename} or references to it")
        else:
            errors.append(f"Rewrite rule '{rule.name}' still matches {result.applications[rule.name]} line(s)")
    return len(errors) == 0, errors


def _check_manifest(manifest_path: Path, config: ReleaseToolConfig) -> tuple[bool, list[str]]:
    """The manifest must parse and hold every configured entry."""
    try:
        manifest = load_manifest(manifest_path)
        sections = manifest.sections()
    except ManifestError as err:
        return False, [str(err)]

    expected = [(entry.section, entry.key, entry.value) for entry in config.manifest.entries]
    if config.manifest.version is not None:
        expected.append((ROOT_SECTION, "version", config.manifest.version))

    errors: list[str] = []
    for section, key, value in expected:
        actual = sections.get(section, {}).get(key)
        if actual != value:
            label = f"[{section}] {key}" if section else key
            errors.append(f"Manifest {label} is {actual!r}, expected {value!r}")
    return len(errors) == 0, errors


def verify_target(target_root: Path, config: ReleaseToolConfig) -> VerificationReport:
    """
    Run every check against a target repository checkout.

    Args:
        target_root: Root of the target repository.
        config: The release config the target was (supposedly) built with.

    Returns:
        VerificationReport; `is_valid` is True only if every check passed.
    """
    source_dir = target_root / config.transplant.source_subdir
    manifest_path = target_root / config.locator.manifest_name

    checks = [
        ("sources_patched", lambda: _check_sources_patched(source_dir, config)),
        ("manifest_entries", lambda: _check_manifest(manifest_path, config)),
    ]

    passed: list[str] = []
    failed: list[str] = []
    all_errors: list[str] = []

    for name, check in checks:
        ok, errors = check()
        if ok:
            passed.append(name)
        else:
            failed.append(name)
            all_errors.extend(errors)

    report = VerificationReport(
        is_valid=not failed,
        target_dir=str(target_root),
        checks_passed=passed,
        checks_failed=failed,
        errors=all_errors,
    )

    _logger.info(
        "Verification finished",
        extra={
            "target_dir": str(target_root),
            "is_valid": report.is_valid,
            "failed": failed,
        },
    )
    return report
