# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Transplanter — copies located bindings into the target repository.

Binding files always overwrite their namesakes in the target source
directory. The manifest is different: the copy in the target root usually
carries hand-maintained [compat] bounds and a bumped version, so the
template is only copied when the target has no manifest at all.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from bindrel.config.schema import LocatorConfig, TransplantConfig
from bindrel.logging.logger import get_logger
from bindrel.release.errors import NotFoundError, TransplantError
from bindrel.release.locator.locator import LocatedBindings
from bindrel.utils.filesystem import atomic_copy, atomic_write

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class TransplantResult:
    """What the transplanter wrote."""

    source_dir: Path
    manifest_path: Path
    written: tuple[str, ...]
    overwritten: tuple[str, ...]
    manifest_preserved: bool


def transplant(
    located: LocatedBindings,
    target_root: Path,
    config: TransplantConfig,
    locator_config: LocatorConfig,
) -> TransplantResult:
    """
    Write located bindings into `<target_root>/<source_subdir>` and seed the
    manifest when the target has none.

    Args:
        located: Output of the locator.
        target_root: Root of the target repository checkout.
        config: Transplant settings.
        locator_config: Supplies the manifest file name.

    Returns:
        TransplantResult listing written and overwritten files.

    Raises:
        NotFoundError: The target repository does not exist.
        TransplantError: On any filesystem failure, with the offending path.
    """
    if not target_root.is_dir():
        raise NotFoundError(f"Target repository not found: {target_root}", path=str(target_root))

    source_dir = target_root / config.source_subdir
    written: list[str] = []
    overwritten: list[str] = []

    for binding in located.files:
        destination = source_dir / binding.relative_path
        existed = destination.exists()
        try:
            atomic_write(destination, binding.content)
        except OSError as err:
            raise TransplantError(
                f"Cannot write binding {destination}: {err}", path=str(destination)
            ) from err
        written.append(binding.relative_path)
        if existed:
            overwritten.append(binding.relative_path)

    manifest_path = target_root / locator_config.manifest_name
    manifest_preserved = manifest_path.exists()
    if manifest_preserved:
        _logger.info(
            "Keeping existing manifest",
            extra={"manifest": str(manifest_path)},
        )
    else:
        try:
            atomic_copy(located.manifest_template, manifest_path)
        except OSError as err:
            raise TransplantError(
                f"Cannot copy manifest template to {manifest_path}: {err}",
                path=str(manifest_path),
            ) from err
        _logger.info(
            "Copied manifest template",
            extra={"source": str(located.manifest_template), "manifest": str(manifest_path)},
        )

    _logger.info(
        "Transplanted bindings",
        extra={
            "source_dir": str(source_dir),
            "written": len(written),
            "overwritten": len(overwritten),
        },
    )

    return TransplantResult(
        source_dir=source_dir,
        manifest_path=manifest_path,
        written=tuple(written),
        overwritten=tuple(overwritten),
        manifest_preserved=manifest_preserved,
    )
