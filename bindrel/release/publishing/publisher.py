# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Publisher — stages the release in git and, when asked, requests a registry
update.

Staging never commits. The maintainer reviews `git diff --cached` and
writes the commit message; the tool only makes sure additions,
modifications and deletions under the binding directory and the manifest
are all in the index.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from bindrel.logging.logger import get_logger
from bindrel.release.errors import PublishError
from bindrel.release.publishing.registry import RegistryClient

_logger: logging.Logger = get_logger(__name__)

GIT_TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class StageResult:
    """Paths sitting in the git index after staging, relative to the repo root."""

    staged: tuple[str, ...]


def _run_git(repo_root: Path, *args: str) -> str:
    """Run a git command in `repo_root`, returning stdout or raising PublishError."""
    command = ["git", *args]
    try:
        result = subprocess.run(
            command,
            cwd=str(repo_root),
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
            check=False,
        )
    except FileNotFoundError as err:
        raise PublishError("git executable not found on PATH", path=str(repo_root)) from err
    except subprocess.TimeoutExpired as err:
        raise PublishError(f"`{' '.join(command)}` timed out", path=str(repo_root)) from err

    if result.returncode != 0:
        raise PublishError(
            f"`{' '.join(command)}` failed with exit code {result.returncode}: "
            f"{result.stderr.strip()}",
            path=str(repo_root),
        )
    return result.stdout


def stage_changes(repo_root: Path, paths: Sequence[str]) -> StageResult:
    """
    Stage every change under `paths` (relative to `repo_root`).

    `git add --all` picks up deletions too, so a binding removed by a delete
    rule disappears from the index as well.

    Raises:
        PublishError: `repo_root` is not a git checkout or git failed.
    """
    _run_git(repo_root, "rev-parse", "--is-inside-work-tree")

    # A pathspec matching nothing makes `git add` fail.
    targets = [path for path in paths if (repo_root / path).exists()]
    if targets:
        _run_git(repo_root, "add", "--all", "--", *targets)

    staged = tuple(
        line for line in _run_git(repo_root, "diff", "--cached", "--name-only").splitlines() if line
    )
    _logger.info(
        "Staged changes for commit",
        extra={"repo": str(repo_root), "staged": len(staged)},
    )
    return StageResult(staged=staged)


def request_registry_update(
    registry: RegistryClient,
    package_name: str,
    version: Optional[str],
) -> str:
    """
    Submit a registry update and return its tracking handle.

    Raises:
        PublishError: no version is known.
        RegistryError: the registry rejected the request.
    """
    if not version:
        raise PublishError(
            f"Cannot request a registry update for {package_name} without a version "
            "(set manifest.version in the config or a version key in the manifest)"
        )
    handle = registry.submit_update(package_name, version)
    _logger.info(
        "Registry update requested",
        extra={"package": package_name, "version": version, "tracking": handle},
    )
    return handle
