# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the binding locator."""

from pathlib import Path
from typing import Callable

import pytest

from bindrel.config.schema import LocatorConfig
from bindrel.release.errors import NotFoundError, ReleaseError
from bindrel.release.locator.locator import locate_bindings


class TestLocateBindings:
    def test_finds_all_binding_files_sorted(self, build_root: Path) -> None:
        located = locate_bindings(build_root, LocatorConfig())
        assert located.names == ["a.jl", "b.jl", "test_binding.jl"]

    def test_loads_file_contents(self, build_root: Path, sources: dict[str, str]) -> None:
        located = locate_bindings(build_root, LocatorConfig())
        contents = {binding.relative_path: binding.content for binding in located.files}
        assert contents["b.jl"] == sources["b.jl"]

    def test_returns_manifest_template(self, build_root: Path) -> None:
        located = locate_bindings(build_root, LocatorConfig())
        assert located.manifest_template.name == "Project.toml"
        assert located.manifest_template.is_file()
        assert located.source_dir == located.binding_dir / "src"

    def test_ignores_other_extensions_and_directories(self, build_root: Path) -> None:
        source_dir = build_root / "src/mlpack/bindings/julia/mlpack/src"
        (source_dir / "CMakeLists.txt").write_text("project(x)\n", encoding="utf-8")
        (source_dir / "nested.jl").mkdir()

        located = locate_bindings(build_root, LocatorConfig())
        assert located.names == ["a.jl", "b.jl", "test_binding.jl"]

    def test_empty_source_dir_is_not_an_error(
        self, tmp_path: Path, make_build_tree: Callable[..., Path]
    ) -> None:
        root = make_build_tree(tmp_path / "build", {})
        located = locate_bindings(root, LocatorConfig())
        assert located.files == ()

    def test_custom_language_and_package(self, tmp_path: Path) -> None:
        binding_dir = tmp_path / "out" / "src/mlpack/bindings/python/mypkg"
        (binding_dir / "src").mkdir(parents=True)
        (binding_dir / "src" / "x.py").write_text("x = 1\n", encoding="utf-8")
        (binding_dir / "pyproject.toml").write_text("[project]\n", encoding="utf-8")

        config = LocatorConfig(
            language="python", package="mypkg", file_extension=".py", manifest_name="pyproject.toml"
        )
        located = locate_bindings(tmp_path / "out", config)
        assert located.names == ["x.py"]


class TestLocateFailures:
    def test_missing_build_root(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            locate_bindings(tmp_path / "missing", LocatorConfig())
        assert exc_info.value.path == str(tmp_path / "missing")

    def test_missing_binding_directory_names_language(self, tmp_path: Path) -> None:
        (tmp_path / "build").mkdir()
        with pytest.raises(NotFoundError, match="julia"):
            locate_bindings(tmp_path / "build", LocatorConfig())

    def test_missing_manifest_template(self, build_root: Path) -> None:
        (build_root / "src/mlpack/bindings/julia/mlpack/Project.toml").unlink()
        with pytest.raises(NotFoundError, match="Manifest template"):
            locate_bindings(build_root, LocatorConfig())

    def test_missing_src_directory(self, tmp_path: Path) -> None:
        (tmp_path / "build/src/mlpack/bindings/julia/mlpack").mkdir(parents=True)
        with pytest.raises(NotFoundError, match="source directory"):
            locate_bindings(tmp_path / "build", LocatorConfig())

    def test_invalid_utf8_binding_names_the_file(self, build_root: Path) -> None:
        bad = build_root / "src/mlpack/bindings/julia/mlpack/src/bad.jl"
        bad.write_bytes(b"\xff\xfe")
        with pytest.raises(ReleaseError) as exc_info:
            locate_bindings(build_root, LocatorConfig())
        assert exc_info.value.path == str(bad)
