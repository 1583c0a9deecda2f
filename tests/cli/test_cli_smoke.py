# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI smoke tests.

CLI tests must verify:
  - commands execute
  - exit codes are correct
  - help text exists

We use subprocess to test the actual CLI entrypoint the way a user would.
This catches issues that unit tests miss, like broken imports or entrypoint
registration.
"""

import json
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest


def _run_cli(*args: str) -> subprocess.CompletedProcess[str]:
    """Run `bindrel` with the given arguments and capture output."""
    return subprocess.run(
        [sys.executable, "-m", "bindrel.cli.main", *args],
        capture_output=True,
        text=True,
        timeout=30,
    )


def _log_entries(output: str) -> list[dict]:
    """Parse JSON log lines, one object per non-empty line."""
    return [json.loads(line) for line in output.splitlines() if line.strip()]


def _write_log_file_config(directory: Path, log_file: Path) -> Path:
    config_file = directory / "logging.yaml"
    config_file.write_text(
        textwrap.dedent(f"""\
            global:
              config_version: "1.0.0"
              log_file: "{log_file}"
        """),
        encoding="utf-8",
    )
    return config_file


class TestHelpTexts:
    """Every subcommand must have working --help output."""

    @pytest.mark.parametrize("subcommand", ["release", "locate", "patch", "verify", "info"])
    def test_subcommand_help_exits_zero(self, subcommand: str) -> None:
        result = _run_cli(subcommand, "--help")
        assert result.returncode == 0
        assert subcommand in result.stdout.lower() or "usage" in result.stdout.lower()

    def test_root_help_exits_with_user_error(self) -> None:
        """Running bindrel with no args should show help and exit with USER_ERROR (1)."""
        result = _run_cli()
        assert result.returncode == 1


class TestSubcommandExecution:
    def test_info_runs_without_config(self) -> None:
        result = _run_cli("info")
        assert result.returncode == 0

    def test_locate_lists_bindings(self, build_root: Path) -> None:
        result = _run_cli("locate", "--build-dir", str(build_root))
        assert result.returncode == 0
        assert "test_binding.jl" in result.stdout

    def test_locate_missing_build_is_user_error(self, tmp_path: Path) -> None:
        result = _run_cli("locate", "--build-dir", str(tmp_path / "nope"))
        assert result.returncode == 1

    def test_release_then_verify(self, build_root: Path, target_root: Path) -> None:
        result = _run_cli(
            "release", "--build-dir", str(build_root), "--target-dir", str(target_root), "--no-stage"
        )
        assert result.returncode == 0
        a_jl = (target_root / "src" / "a.jl").read_text(encoding="utf-8")
        assert "mlpack_jll.libmlpack_julia_a" in a_jl

        verify = _run_cli("verify", "--target-dir", str(target_root))
        assert verify.returncode == 0

    def test_release_dry_run_writes_nothing(self, build_root: Path, target_root: Path) -> None:
        result = _run_cli(
            "release",
            "--build-dir", str(build_root),
            "--target-dir", str(target_root),
            "--dry-run",
        )
        assert result.returncode == 0
        assert list(target_root.iterdir()) == []

    def test_release_strict_mismatch_is_validation_error(
        self, build_root: Path, target_root: Path
    ) -> None:
        # The default delete rule targets a file this build doesn't have.
        result = _run_cli(
            "release",
            "--build-dir", str(build_root),
            "--target-dir", str(target_root),
            "--no-stage",
            "--strict",
        )
        assert result.returncode == 4  # VALIDATION_ERROR
        assert "patched" in result.stdout

    def test_verify_unpatched_target_is_validation_error(self, target_root: Path) -> None:
        (target_root / "src").mkdir()
        (target_root / "src" / "a.jl").write_text(
            'const aLibrary = joinpath(@__DIR__, "libmlpack_julia_a.so")\n', encoding="utf-8"
        )
        (target_root / "Project.toml").write_text('name = "mlpack"\n', encoding="utf-8")

        result = _run_cli("verify", "--target-dir", str(target_root))
        assert result.returncode == 4

    def test_verify_missing_target_is_user_error(self, tmp_path: Path) -> None:
        result = _run_cli("verify", "--target-dir", str(tmp_path / "nope"))
        assert result.returncode == 1

    def test_patch_rewrites_in_place(self, target_root: Path) -> None:
        (target_root / "src").mkdir()
        a_jl = target_root / "src" / "a.jl"
        a_jl.write_text(
            'const aLibrary = joinpath(@__DIR__, "libmlpack_julia_a.so")\n', encoding="utf-8"
        )

        result = _run_cli("patch", "--target-dir", str(target_root))
        assert result.returncode == 0
        assert a_jl.read_text(encoding="utf-8") == (
            "import mlpack_jll\nconst aLibrary = mlpack_jll.libmlpack_julia_a\n"
        )

    def test_patch_dry_run_leaves_files(self, target_root: Path) -> None:
        (target_root / "src").mkdir()
        original = 'const aLibrary = joinpath(@__DIR__, "libmlpack_julia_a.so")\n'
        a_jl = target_root / "src" / "a.jl"
        a_jl.write_text(original, encoding="utf-8")

        result = _run_cli("patch", "--target-dir", str(target_root), "--dry-run")
        assert result.returncode == 0
        assert a_jl.read_text(encoding="utf-8") == original


class TestConfigLoading:
    """Subcommands should handle config loading failures gracefully."""

    def test_nonexistent_config_returns_config_error(self, build_root: Path) -> None:
        result = _run_cli(
            "locate", "--build-dir", str(build_root), "--config", "/nonexistent/path.yaml"
        )
        assert result.returncode == 2  # CONFIG_ERROR

    def test_valid_config_is_accepted(self, build_root: Path, tmp_config_file: Path) -> None:
        result = _run_cli("locate", "--build-dir", str(build_root), "--config", str(tmp_config_file))
        assert result.returncode == 0

    def test_publish_without_registry_is_config_error(
        self, build_root: Path, target_root: Path
    ) -> None:
        result = _run_cli(
            "release",
            "--build-dir", str(build_root),
            "--target-dir", str(target_root),
            "--publish",
        )
        assert result.returncode == 2
        assert list(target_root.iterdir()) == []

    def test_publish_with_unset_token_is_config_error(
        self, build_root: Path, target_root: Path, tmp_path: Path
    ) -> None:
        config_file = tmp_path / "publish.yaml"
        config_file.write_text(
            textwrap.dedent("""\
                global:
                  config_version: "1.0.0"
                publish:
                  registry_url: "http://127.0.0.1:9/updates"
                  token_env: "BINDREL_SMOKE_TOKEN_THAT_IS_NOT_SET"
            """),
            encoding="utf-8",
        )
        result = _run_cli(
            "release",
            "--build-dir", str(build_root),
            "--target-dir", str(target_root),
            "--config", str(config_file),
            "--publish",
        )
        assert result.returncode == 2


class TestGlobalOptions:
    def test_log_level_option_is_accepted(self) -> None:
        result = _run_cli("info", "--log-level", "DEBUG")
        assert result.returncode == 0

    def test_invalid_log_level_is_rejected(self) -> None:
        result = _run_cli("info", "--log-level", "LOUD")
        assert result.returncode == 2  # argparse usage error

    def test_dry_run_option_is_accepted(self) -> None:
        result = _run_cli("info", "--dry-run")
        assert result.returncode == 0


class TestReleaseLogging:
    """--log-level and global.log_file reach the modules doing the release work."""

    def test_error_level_hides_info_lines(self, build_root: Path, target_root: Path) -> None:
        result = _run_cli(
            "release",
            "--build-dir", str(build_root),
            "--target-dir", str(target_root),
            "--no-stage",
            "--log-level", "ERROR",
        )
        assert result.returncode == 0
        assert [entry for entry in _log_entries(result.stdout) if entry["level"] == "INFO"] == []

    def test_debug_level_shows_rule_applications(self, build_root: Path, target_root: Path) -> None:
        result = _run_cli(
            "release",
            "--build-dir", str(build_root),
            "--target-dir", str(target_root),
            "--no-stage",
            "--log-level", "DEBUG",
        )
        assert result.returncode == 0
        applied = [entry for entry in _log_entries(result.stdout) if entry["msg"] == "Rule applied"]
        assert applied
        assert applied[0]["module"] == "bindrel.release.patching.patcher"

    def test_log_file_records_stage_progress(
        self, build_root: Path, target_root: Path, tmp_path: Path
    ) -> None:
        log_file = tmp_path / "logs" / "release.log"
        config_file = _write_log_file_config(tmp_path, log_file)

        result = _run_cli(
            "release",
            "--build-dir", str(build_root),
            "--target-dir", str(target_root),
            "--config", str(config_file),
            "--no-stage",
        )
        assert result.returncode == 0
        messages = [entry["msg"] for entry in _log_entries(log_file.read_text(encoding="utf-8"))]
        assert "bindrel bootstrap complete" in messages
        assert "Patched bindings" in messages
        assert "Release complete" in messages

    def test_log_file_records_failed_stage(
        self, build_root: Path, target_root: Path, tmp_path: Path
    ) -> None:
        log_file = tmp_path / "logs" / "release.log"
        config_file = _write_log_file_config(tmp_path, log_file)

        result = _run_cli(
            "release",
            "--build-dir", str(build_root),
            "--target-dir", str(target_root),
            "--config", str(config_file),
            "--no-stage",
            "--strict",
        )
        assert result.returncode == 4
        failures = [
            entry
            for entry in _log_entries(log_file.read_text(encoding="utf-8"))
            if entry["msg"] == "Release failed"
        ]
        assert len(failures) == 1
        assert failures[0]["stage"] == "patched"
        assert failures[0]["rule"] is not None


class TestUnreadableInputs:
    def test_release_missing_target_is_user_error(self, build_root: Path, tmp_path: Path) -> None:
        result = _run_cli(
            "release",
            "--build-dir", str(build_root),
            "--target-dir", str(tmp_path / "no-such-checkout"),
            "--no-stage",
        )
        assert result.returncode == 1

    def test_patch_invalid_utf8_is_runtime_error(self, target_root: Path) -> None:
        (target_root / "src").mkdir()
        (target_root / "src" / "bad.jl").write_bytes(b"\xff\xfe")

        result = _run_cli("patch", "--target-dir", str(target_root))
        assert result.returncode == 3  # RUNTIME_ERROR
        assert "Traceback" not in result.stderr
        failure = _log_entries(result.stdout)[-1]
        assert failure["msg"] == "Patch failed"
        assert failure["path"] == str(target_root / "src" / "bad.jl")

    def test_verify_invalid_utf8_is_runtime_error(self, target_root: Path) -> None:
        (target_root / "src").mkdir()
        (target_root / "src" / "bad.jl").write_bytes(b"\xff\xfe")
        (target_root / "Project.toml").write_text('name = "mlpack"\n', encoding="utf-8")

        result = _run_cli("verify", "--target-dir", str(target_root))
        assert result.returncode == 3
        assert "Traceback" not in result.stderr
        assert _log_entries(result.stdout)[-1]["path"] == str(target_root / "src" / "bad.jl")
