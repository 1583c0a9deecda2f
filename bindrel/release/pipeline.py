# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The release pipeline.

    LOCATED → TRANSPLANTED → PATCHED → MANIFEST_UPDATED → STAGED_FOR_COMMIT → PUBLISHED

Stages run strictly in order against one target checkout. A failure stops
the run and is raised as StageFailedError naming the stage; whatever the
earlier stages wrote stays in place. Re-running after fixing the cause is
safe because every stage is idempotent.
"""

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from bindrel.config.schema import ReleaseToolConfig
from bindrel.logging.logger import get_logger
from bindrel.release.errors import ReleaseError, StageFailedError
from bindrel.release.locator.locator import LocatedBindings, locate_bindings
from bindrel.release.manifests.manifest import (
    ROOT_SECTION,
    ManifestEntry,
    ManifestUpdate,
    load_manifest,
    update_manifest,
    write_manifest,
)
from bindrel.release.patching.patcher import PatchResult, patch_directory
from bindrel.release.patching.rules import build_rules
from bindrel.release.publishing.publisher import (
    StageResult,
    request_registry_update,
    stage_changes,
)
from bindrel.release.publishing.registry import RegistryClient
from bindrel.release.transplant.transplanter import TransplantResult, transplant

_logger: logging.Logger = get_logger(__name__)


class ReleaseStage(enum.Enum):
    PENDING = "pending"
    LOCATED = "located"
    TRANSPLANTED = "transplanted"
    PATCHED = "patched"
    MANIFEST_UPDATED = "manifest_updated"
    STAGED_FOR_COMMIT = "staged_for_commit"
    PUBLISHED = "published"


@dataclass
class ReleaseSession:
    """
    Execution context for one release run. Lives for the run only.

    `stage` is the last stage that completed; the result fields fill in as
    stages finish.
    """

    build_root: Path
    target_root: Path
    config: ReleaseToolConfig
    stage: ReleaseStage = ReleaseStage.PENDING
    located: Optional[LocatedBindings] = None
    transplanted: Optional[TransplantResult] = None
    patched: Optional[PatchResult] = None
    manifest_update: Optional[ManifestUpdate] = None
    staged: Optional[StageResult] = None
    tracking_handle: Optional[str] = None
    skipped: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReleaseReport:
    """Summary of a finished run, suitable for logging."""

    final_stage: ReleaseStage
    located_files: int
    written_files: int
    changed_files: tuple[str, ...]
    deleted_files: tuple[str, ...]
    unmatched_rules: tuple[str, ...]
    manifest_changes: int
    manifest_preserved: bool
    staged: tuple[str, ...]
    tracking_handle: Optional[str]
    skipped: tuple[str, ...]
    dry_run: bool = False


def manifest_entries(config: ReleaseToolConfig) -> list[ManifestEntry]:
    """The configured manifest entries, with the version bump last."""
    entries = [
        ManifestEntry(section=entry.section, key=entry.key, value=entry.value)
        for entry in config.manifest.entries
    ]
    if config.manifest.version is not None:
        entries.append(ManifestEntry(section=ROOT_SECTION, key="version", value=config.manifest.version))
    return entries


def _locate(session: ReleaseSession) -> None:
    session.located = locate_bindings(session.build_root, session.config.locator)


def _transplant(session: ReleaseSession) -> None:
    assert session.located is not None
    session.transplanted = transplant(
        session.located,
        session.target_root,
        session.config.transplant,
        session.config.locator,
    )


def _patch(session: ReleaseSession, strict: bool) -> None:
    rules = build_rules(session.config.patch)
    if not rules:
        session.skipped.append(ReleaseStage.PATCHED.value)
        return
    session.patched = patch_directory(
        session.target_root / session.config.transplant.source_subdir,
        rules,
        session.config.locator.file_extension,
        strict=strict,
    )


def _update_manifest(session: ReleaseSession) -> None:
    entries = manifest_entries(session.config)
    if not entries:
        session.skipped.append(ReleaseStage.MANIFEST_UPDATED.value)
        return
    manifest_path = session.target_root / session.config.locator.manifest_name
    manifest = load_manifest(manifest_path)
    session.manifest_update = update_manifest(manifest, entries)
    if session.manifest_update.changed:
        write_manifest(manifest, manifest_path)


def _resolve_version(session: ReleaseSession) -> Optional[str]:
    if session.config.manifest.version is not None:
        return session.config.manifest.version
    manifest_path = session.target_root / session.config.locator.manifest_name
    version = load_manifest(manifest_path).get(ROOT_SECTION, "version")
    return str(version) if version is not None else None


def _stage(session: ReleaseSession) -> None:
    if not session.config.publish.stage:
        session.skipped.append(ReleaseStage.STAGED_FOR_COMMIT.value)
        return
    session.staged = stage_changes(
        session.target_root,
        [session.config.transplant.source_subdir, session.config.locator.manifest_name],
    )


def _submit(session: ReleaseSession, registry: RegistryClient) -> None:
    session.tracking_handle = request_registry_update(
        registry,
        session.config.publish.package_name,
        _resolve_version(session),
    )


def _run_stage(session: ReleaseSession, stage: ReleaseStage, step: Callable[[], None]) -> None:
    _logger.debug("Stage started", extra={"stage": stage.value})
    try:
        step()
    except (ReleaseError, OSError, ValueError) as err:
        _logger.error(
            "Stage failed",
            extra={
                "stage": stage.value,
                "error": str(err),
                "path": getattr(err, "path", None),
                "rule": getattr(err, "rule", None),
            },
        )
        raise StageFailedError(stage.value, err) from err
    session.stage = stage


def _build_report(session: ReleaseSession, dry_run: bool = False) -> ReleaseReport:
    located = session.located
    transplanted = session.transplanted
    patched = session.patched
    return ReleaseReport(
        final_stage=session.stage,
        located_files=len(located.files) if located else 0,
        written_files=len(transplanted.written) if transplanted else 0,
        changed_files=patched.changed_files if patched else (),
        deleted_files=patched.deleted_files if patched else (),
        unmatched_rules=patched.unmatched_rules if patched else (),
        manifest_changes=len(session.manifest_update.changed) if session.manifest_update else 0,
        manifest_preserved=transplanted.manifest_preserved if transplanted else False,
        staged=session.staged.staged if session.staged else (),
        tracking_handle=session.tracking_handle,
        skipped=tuple(session.skipped),
        dry_run=dry_run,
    )


def run_release(
    session: ReleaseSession,
    registry: Optional[RegistryClient] = None,
    strict: Optional[bool] = None,
    dry_run: bool = False,
) -> ReleaseReport:
    """
    Run the whole pipeline for one session.

    Args:
        session: Build root, target root and config.
        registry: When given, a registry update is requested after staging.
        strict: Overrides `patch.strict` from the config when not None.
        dry_run: Locate only and report what would be written.

    Returns:
        ReleaseReport describing the run.

    Raises:
        StageFailedError: A stage failed; `.stage` names it, `.cause` holds the original error.
    """
    effective_strict = session.config.patch.strict if strict is None else strict

    _logger.info(
        "Release started",
        extra={
            "build_root": str(session.build_root),
            "target_root": str(session.target_root),
            "strict": effective_strict,
            "dry_run": dry_run,
            "publish": registry is not None,
        },
    )

    _run_stage(session, ReleaseStage.LOCATED, lambda: _locate(session))
    if dry_run:
        assert session.located is not None
        _logger.info(
            "Dry run, would transplant bindings",
            extra={
                "files": session.located.names,
                "target_dir": str(session.target_root / session.config.transplant.source_subdir),
            },
        )
        return _build_report(session, dry_run=True)

    _run_stage(session, ReleaseStage.TRANSPLANTED, lambda: _transplant(session))
    _run_stage(session, ReleaseStage.PATCHED, lambda: _patch(session, effective_strict))
    _run_stage(session, ReleaseStage.MANIFEST_UPDATED, lambda: _update_manifest(session))
    _run_stage(session, ReleaseStage.STAGED_FOR_COMMIT, lambda: _stage(session))
    if registry is not None:
        _run_stage(session, ReleaseStage.PUBLISHED, lambda: _submit(session, registry))

    report = _build_report(session)
    _logger.info(
        "Release finished",
        extra={
            "final_stage": report.final_stage.value,
            "written": report.written_files,
            "changed": len(report.changed_files),
            "deleted": list(report.deleted_files),
            "manifest_changes": report.manifest_changes,
            "staged": len(report.staged),
            "tracking": report.tracking_handle,
        },
    )
    return report
