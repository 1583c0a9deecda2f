# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Binding locator — finds the generated binding files and the manifest
template in an upstream build tree.

Expected layout (defaults shown):

    <build>/src/mlpack/bindings/julia/mlpack/
    ├─ Project.toml      manifest template
    └─ src/
       ├─ mlpack.jl
       ├─ pca.jl
       └─ ...

Read-only. Missing directories are fatal: there is nothing to release.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from bindrel.config.schema import LocatorConfig
from bindrel.logging.logger import get_logger
from bindrel.release.errors import NotFoundError, ReleaseError
from bindrel.utils.filesystem import safe_read

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class BindingFile:
    """A generated binding: its path relative to the binding src/ dir and its text."""

    relative_path: str
    content: str


@dataclass(frozen=True)
class LocatedBindings:
    """Everything the locator found in one build tree."""

    binding_dir: Path
    source_dir: Path
    manifest_template: Path
    files: tuple[BindingFile, ...]

    @property
    def names(self) -> list[str]:
        return [binding.relative_path for binding in self.files]


def _find_binding_dir(build_root: Path, config: LocatorConfig) -> Path:
    """Resolve and check the binding package directory inside the build tree."""
    if not build_root.is_dir():
        raise NotFoundError(f"Build directory not found: {build_root}", path=str(build_root))

    binding_dir = build_root / config.resolve_bindings_path()
    if not binding_dir.is_dir():
        raise NotFoundError(
            f"No {config.language} bindings for '{config.package}' in {build_root}. "
            f"Expected directory {binding_dir}. Was the {config.language} binding built?",
            path=str(binding_dir),
        )
    return binding_dir


def locate_bindings(build_root: Path, config: LocatorConfig) -> LocatedBindings:
    """
    Collect the binding files and manifest template from a build tree.

    Only regular files directly inside the binding `src/` directory whose name
    ends with the configured extension are picked up, sorted by name so every
    run sees them in the same order.

    Args:
        build_root: Root of the upstream build output.
        config: Locator settings.

    Returns:
        LocatedBindings with file contents loaded.

    Raises:
        NotFoundError: If the build root, the binding directory, its src/
            directory, or the manifest template is missing.
        ReleaseError: A binding file is not valid UTF-8.
    """
    binding_dir = _find_binding_dir(build_root, config)

    source_dir = binding_dir / "src"
    if not source_dir.is_dir():
        raise NotFoundError(f"Binding source directory not found: {source_dir}", path=str(source_dir))

    manifest_template = binding_dir / config.manifest_name
    if not manifest_template.is_file():
        raise NotFoundError(
            f"Manifest template not found: {manifest_template}", path=str(manifest_template)
        )

    files: list[BindingFile] = []
    for candidate in sorted(source_dir.iterdir()):
        if not candidate.is_file() or not candidate.name.endswith(config.file_extension):
            continue
        try:
            content = safe_read(candidate)
        except UnicodeDecodeError as err:
            raise ReleaseError(
                f"Binding file is not valid UTF-8: {candidate}", path=str(candidate)
            ) from err
        files.append(BindingFile(relative_path=candidate.name, content=content))

    if not files:
        _logger.warning(
            "No binding files matched",
            extra={"source_dir": str(source_dir), "extension": config.file_extension},
        )

    _logger.info(
        "Located bindings",
        extra={
            "binding_dir": str(binding_dir),
            "file_count": len(files),
            "manifest_template": str(manifest_template),
        },
    )

    return LocatedBindings(
        binding_dir=binding_dir,
        source_dir=source_dir,
        manifest_template=manifest_template,
        files=tuple(files),
    )
