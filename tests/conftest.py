# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for bindrel tests.

The build tree fixtures mimic what the upstream build leaves behind for the
Julia bindings; the target fixture is an empty package checkout.
"""

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from bindrel.config.schema import ReleaseToolConfig

BINDINGS_PATH = Path("src/mlpack/bindings/julia/mlpack")

PROJECT_TOML = textwrap.dedent("""\
    name = "mlpack"
    uuid = "df8a3d52-0d1c-5f04-b3d9-8a4c1f5a1f5a"
    version = "4.0.0"

    [deps]
    Serialization = "9e88b42a-f829-5b0c-bbe9-9e923198166b"

    [compat]
    julia = "1.3"
""")

A_JL = textwrap.dedent("""\
    export a

    using mlpack._Internal.params

    const aLibrary = joinpath(@__DIR__, "libmlpack_julia_a.so")

    function call_a(p, t)
      success = ccall((:mlpack_a, aLibrary), Bool, (Ptr{Nothing}, Ptr{Nothing}), p, t)
    end
""")

B_JL = textwrap.dedent("""\
    export b

    b(x) = x + 1
""")

TEST_BINDING_JL = textwrap.dedent("""\
    export test_binding

    const test_bindingLibrary = joinpath(@__DIR__, "libmlpack_julia_test_binding.so")
""")


def _make_config(**sections: object) -> ReleaseToolConfig:
    data: dict[str, object] = {"global": {"config_version": "1.0.0", "log_level": "DEBUG"}}
    data.update(sections)
    return ReleaseToolConfig.model_validate(data)


def _write_build_tree(root: Path, files: dict[str, str], manifest: str = PROJECT_TOML) -> Path:
    binding_dir = root / BINDINGS_PATH
    source_dir = binding_dir / "src"
    source_dir.mkdir(parents=True)
    for name, content in files.items():
        (source_dir / name).write_text(content, encoding="utf-8")
    (binding_dir / "Project.toml").write_text(manifest, encoding="utf-8")
    return root


@pytest.fixture()
def build_root(tmp_path: Path) -> Path:
    """A build tree holding a.jl, b.jl and test_binding.jl."""
    return _write_build_tree(
        tmp_path / "build",
        {"a.jl": A_JL, "b.jl": B_JL, "test_binding.jl": TEST_BINDING_JL},
    )


@pytest.fixture()
def target_root(tmp_path: Path) -> Path:
    """An empty target repository checkout."""
    target = tmp_path / "mlpack.jl"
    target.mkdir()
    return target


@pytest.fixture()
def test_binding_config() -> ReleaseToolConfig:
    """Default rewrite rule plus a delete rule for test_binding.jl; no git staging."""
    return _make_config(
        patch={"delete_rules": [{"name": "test-binding", "filename": "test_binding.jl"}]},
        publish={"stage": False},
    )


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """The smallest config that passes schema validation."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "bindrel-test"
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """A config file that's valid YAML but fails schema validation (missing required field)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "bindrel-test"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file


@pytest.fixture()
def make_config() -> Callable[..., ReleaseToolConfig]:
    """Factory: build a config from keyword sections, with `global` filled in."""
    return _make_config


@pytest.fixture()
def make_build_tree() -> Callable[..., Path]:
    """Factory: lay out a fake build output with the given binding files; returns its root."""
    return _write_build_tree


@pytest.fixture()
def sources() -> dict[str, str]:
    """The binding file contents used by the `build_root` fixture."""
    return {"a.jl": A_JL, "b.jl": B_JL, "test_binding.jl": TEST_BINDING_JL}
