# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for target verification.

A target is release-ready when the patch rules have nothing left to do and
the manifest carries every configured entry.
"""

from pathlib import Path
from typing import Callable

from bindrel.config.schema import ReleaseToolConfig
from bindrel.release.pipeline import ReleaseSession, run_release
from bindrel.release.verification.verifier import verify_target


def _config(make_config: Callable[..., ReleaseToolConfig]) -> ReleaseToolConfig:
    return make_config(
        patch={"delete_rules": [{"name": "test-binding", "filename": "test_binding.jl"}]},
        manifest={
            "entries": [{"section": "compat", "key": "mlpack_jll", "value": "4.0.1"}],
            "version": "4.0.1",
        },
        publish={"stage": False},
    )


class TestVerifyTarget:
    def test_released_target_is_valid(
        self, build_root: Path, target_root: Path, make_config: Callable[..., ReleaseToolConfig]
    ) -> None:
        config = _config(make_config)
        run_release(ReleaseSession(build_root=build_root, target_root=target_root, config=config))

        report = verify_target(target_root, config)

        assert report.is_valid
        assert report.checks_passed == ["sources_patched", "manifest_entries"]
        assert report.errors == []

    def test_unpatched_sources_fail(
        self, build_root: Path, target_root: Path, make_config: Callable[..., ReleaseToolConfig]
    ) -> None:
        config = _config(make_config)
        run_release(ReleaseSession(build_root=build_root, target_root=target_root, config=config))
        (target_root / "src" / "c.jl").write_text(
            'const cLibrary = joinpath(@__DIR__, "libmlpack_julia_c.so")\n', encoding="utf-8"
        )

        report = verify_target(target_root, config)

        assert not report.is_valid
        assert report.checks_failed == ["sources_patched"]
        assert "local-library-path" in report.errors[0]

    def test_leftover_deleted_file_fails(
        self, build_root: Path, target_root: Path, make_config: Callable[..., ReleaseToolConfig]
    ) -> None:
        config = _config(make_config)
        run_release(ReleaseSession(build_root=build_root, target_root=target_root, config=config))
        (target_root / "src" / "test_binding.jl").write_text("x\n", encoding="utf-8")

        report = verify_target(target_root, config)

        assert not report.is_valid
        assert "test_binding.jl" in report.errors[0]

    def test_stale_manifest_fails(
        self, build_root: Path, target_root: Path, make_config: Callable[..., ReleaseToolConfig]
    ) -> None:
        config = _config(make_config)
        run_release(ReleaseSession(build_root=build_root, target_root=target_root, config=config))
        manifest = target_root / "Project.toml"
        manifest.write_text(
            manifest.read_text(encoding="utf-8").replace('version = "4.0.1"', 'version = "4.0.0"'),
            encoding="utf-8",
        )

        report = verify_target(target_root, config)

        assert report.checks_failed == ["manifest_entries"]
        assert "'4.0.0'" in report.errors[0]

    def test_empty_target_fails_both_checks(
        self, target_root: Path, make_config: Callable[..., ReleaseToolConfig]
    ) -> None:
        report = verify_target(target_root, _config(make_config))

        assert not report.is_valid
        assert report.checks_failed == ["sources_patched", "manifest_entries"]
        assert len(report.errors) == 2
