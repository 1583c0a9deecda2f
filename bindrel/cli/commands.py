# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the bindrel CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code. Nothing is printed; every result goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from bindrel.cli.exit_codes import (
    CONFIG_ERROR,
    RUNTIME_ERROR,
    SUCCESS,
    USER_ERROR,
    VALIDATION_ERROR,
)
from bindrel.config.exceptions import ConfigError
from bindrel.config.loader import load_config_or_default
from bindrel.config.schema import ReleaseToolConfig
from bindrel.logging.logger import get_logger
from bindrel.release.errors import (
    NotFoundError,
    PatchMismatchError,
    RegistryError,
    ReleaseError,
    StageFailedError,
)
from bindrel.release.publishing.registry import HttpRegistryClient
from bindrel.runtime.bootstrap import bootstrap


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[ReleaseToolConfig], logging.Logger]:
    """
    The shared setup every command needs: load config (or defaults), run bootstrap.

    Returns a tuple of (exit_code, config, logger). If exit_code is not SUCCESS,
    the caller should return it immediately.
    """
    logger = get_logger(f"bindrel.cli.{command_name}", log_level=args.log_level or "INFO")

    config_path = Path(args.config) if args.config is not None else None
    try:
        config = load_config_or_default(config_path)
    except ConfigError as err:
        logger.error(
            "Configuration error",
            extra={"command": command_name, "error": str(err)},
        )
        return CONFIG_ERROR, None, logger

    if config_path is None:
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )

    bootstrap(config.global_config, log_level=args.log_level)
    return SUCCESS, config, logger


def _exit_code_for(err: BaseException) -> int:
    """Map a release failure to the exit code scripts should see."""
    if isinstance(err, StageFailedError):
        return _exit_code_for(err.cause)
    if isinstance(err, NotFoundError):
        return USER_ERROR
    if isinstance(err, PatchMismatchError):
        return VALIDATION_ERROR
    return RUNTIME_ERROR


def _log_release_failure(logger: logging.Logger, message: str, err: ReleaseError) -> None:
    logger.error(
        message,
        extra={
            "stage": getattr(err, "stage", None),
            "error": str(err),
            "rule": err.rule,
            "path": err.path,
        },
    )


def _build_registry(
    config: ReleaseToolConfig, logger: logging.Logger
) -> Optional[HttpRegistryClient]:
    """Create the registry client for --publish, or None with a logged reason."""
    publish_config = config.publish
    if publish_config.registry_url is None:
        logger.error("--publish needs publish.registry_url in the config")
        return None
    try:
        return HttpRegistryClient.from_env(
            publish_config.registry_url,
            token_env=publish_config.token_env,
            timeout_seconds=publish_config.timeout_seconds,
        )
    except RegistryError as err:
        logger.error("Cannot set up registry client", extra={"error": str(err)})
        return None


def handle_release(args: argparse.Namespace) -> int:
    """Run the full pipeline: locate, transplant, patch, update manifest, stage, publish."""
    exit_code, config, logger = _load_and_bootstrap(args, "release")
    if exit_code != SUCCESS:
        return exit_code
    assert config is not None

    from bindrel.release.pipeline import ReleaseSession, run_release

    registry = None
    if args.publish:
        registry = _build_registry(config, logger)
        if registry is None:
            return CONFIG_ERROR

    if args.no_stage:
        config = config.model_copy(
            update={"publish": config.publish.model_copy(update={"stage": False})}
        )

    session = ReleaseSession(
        build_root=Path(args.build_dir),
        target_root=Path(args.target_dir),
        config=config,
    )

    try:
        report = run_release(
            session,
            registry=registry,
            strict=True if args.strict else None,
            dry_run=args.dry_run,
        )
    except StageFailedError as err:
        _log_release_failure(logger, "Release failed", err)
        return _exit_code_for(err)
    except Exception as err:
        logger.error("Release failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR

    logger.info(
        "Release complete",
        extra={
            "final_stage": report.final_stage.value,
            "dry_run": report.dry_run,
            "written": report.written_files,
            "changed": list(report.changed_files),
            "deleted": list(report.deleted_files),
            "unmatched_rules": list(report.unmatched_rules),
            "manifest_preserved": report.manifest_preserved,
            "manifest_changes": report.manifest_changes,
            "staged": list(report.staged),
            "tracking": report.tracking_handle,
            "skipped": list(report.skipped),
        },
    )
    return SUCCESS


def handle_locate(args: argparse.Namespace) -> int:
    """List the binding files and manifest template a release would use."""
    exit_code, config, logger = _load_and_bootstrap(args, "locate")
    if exit_code != SUCCESS:
        return exit_code
    assert config is not None

    from bindrel.release.locator.locator import locate_bindings

    try:
        located = locate_bindings(Path(args.build_dir), config.locator)
    except NotFoundError as err:
        _log_release_failure(logger, "Bindings not found", err)
        return USER_ERROR
    except ReleaseError as err:
        _log_release_failure(logger, "Locate failed", err)
        return RUNTIME_ERROR
    except OSError as err:
        logger.error("Locate failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR

    logger.info(
        "Bindings located",
        extra={
            "binding_dir": str(located.binding_dir),
            "manifest_template": str(located.manifest_template),
            "files": located.names,
        },
    )
    return SUCCESS


def handle_patch(args: argparse.Namespace) -> int:
    """Apply the patch rules to an already-transplanted target checkout."""
    exit_code, config, logger = _load_and_bootstrap(args, "patch")
    if exit_code != SUCCESS:
        return exit_code
    assert config is not None

    from bindrel.release.patching.patcher import apply_rules, load_source_files, patch_directory
    from bindrel.release.patching.rules import build_rules

    source_dir = Path(args.target_dir) / config.transplant.source_subdir
    if not source_dir.is_dir():
        logger.error("Source directory not found", extra={"path": str(source_dir)})
        return USER_ERROR

    strict = args.strict or config.patch.strict
    try:
        rules = build_rules(config.patch)
        if args.dry_run:
            result = apply_rules(
                load_source_files(source_dir, config.locator.file_extension), rules, strict=strict
            )
            logger.info(
                "Dry run, would patch bindings",
                extra={"changed": list(result.changed_files), "deleted": list(result.deleted_files)},
            )
            return SUCCESS
        result = patch_directory(source_dir, rules, config.locator.file_extension, strict=strict)
    except ReleaseError as err:
        _log_release_failure(logger, "Patch failed", err)
        return _exit_code_for(err)
    except OSError as err:
        logger.error("Patch failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR

    logger.info(
        "Patch complete",
        extra={
            "changed": list(result.changed_files),
            "deleted": list(result.deleted_files),
            "applications": result.applications,
            "unmatched_rules": list(result.unmatched_rules),
        },
    )
    return SUCCESS


def handle_verify(args: argparse.Namespace) -> int:
    """Check that a target checkout is fully patched and its manifest is up to date."""
    exit_code, config, logger = _load_and_bootstrap(args, "verify")
    if exit_code != SUCCESS:
        return exit_code
    assert config is not None

    from bindrel.release.verification.verifier import verify_target

    target_root = Path(args.target_dir)
    if not target_root.is_dir():
        logger.error("Target directory not found", extra={"path": str(target_root)})
        return USER_ERROR

    try:
        report = verify_target(target_root, config)
    except ReleaseError as err:
        _log_release_failure(logger, "Verification failed", err)
        return RUNTIME_ERROR
    except OSError as err:
        logger.error("Verification failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR

    if not report.is_valid:
        logger.error(
            "Target is not release-ready",
            extra={"failed": report.checks_failed, "errors": report.errors},
        )
        return VALIDATION_ERROR

    logger.info("Target is release-ready", extra={"checks": report.checks_passed})
    return SUCCESS


def handle_info(args: argparse.Namespace) -> int:
    """Display environment and configuration information."""
    logger = get_logger("bindrel.cli.info", log_level=args.log_level or "INFO")

    from bindrel import __version__
    from bindrel.runtime.environment import get_system_info

    system_info = get_system_info()

    logger.info(
        "System information",
        extra={
            "bindrel_version": __version__,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
            "hostname": system_info.hostname,
            "git": system_info.git_version,
            "config": args.config,
        },
    )
    return SUCCESS
