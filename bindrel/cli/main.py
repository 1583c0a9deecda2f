# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for bindrel.

Every operation is a subcommand of `bindrel`. The global options (--config,
--log-level, --dry-run) are inherited by every subcommand through argparse's
parent parser mechanism.

Usage:
    bindrel release --build-dir build/ --target-dir ../mlpack.jl
    bindrel release --build-dir build/ --target-dir ../mlpack.jl --config release.yaml --publish
    bindrel locate --build-dir build/
    bindrel patch --target-dir ../mlpack.jl --strict
    bindrel verify --target-dir ../mlpack.jl
    bindrel info
"""

import argparse
import sys

from bindrel.cli.commands import (
    handle_info,
    handle_locate,
    handle_patch,
    handle_release,
    handle_verify,
)
from bindrel.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    add_help=False keeps its help from colliding with the subcommand parsers.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file. Built-in mlpack Julia defaults apply without one.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level (overrides the config).",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Report what would change without writing anything.",
    )
    return parent


def _add_build_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--build-dir",
        type=str,
        required=True,
        dest="build_dir",
        help="Root of the upstream build output containing the generated bindings.",
    )


def _add_target_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--target-dir",
        type=str,
        required=True,
        dest="target_dir",
        help="Root of the downstream package repository checkout.",
    )


def _add_strict(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--strict",
        action="store_true",
        default=False,
        help="Fail when a patch rule matches nothing.",
    )


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """Register all subcommands with their handler functions and options."""
    release = subparsers.add_parser(
        "release", parents=[parent], help="Run the full release pipeline."
    )
    _add_build_dir(release)
    _add_target_dir(release)
    _add_strict(release)
    release.add_argument(
        "--publish",
        action="store_true",
        default=False,
        help="Request a registry update after staging.",
    )
    release.add_argument(
        "--no-stage",
        action="store_true",
        default=False,
        dest="no_stage",
        help="Do not run `git add` on the target checkout.",
    )
    release.set_defaults(func=handle_release)

    locate = subparsers.add_parser(
        "locate", parents=[parent], help="List the bindings a release would pick up."
    )
    _add_build_dir(locate)
    locate.set_defaults(func=handle_locate)

    patch = subparsers.add_parser(
        "patch", parents=[parent], help="Apply patch rules to a target checkout."
    )
    _add_target_dir(patch)
    _add_strict(patch)
    patch.set_defaults(func=handle_patch)

    verify = subparsers.add_parser(
        "verify", parents=[parent], help="Check a target checkout is fully patched."
    )
    _add_target_dir(verify)
    verify.set_defaults(func=handle_verify)

    info = subparsers.add_parser(
        "info", parents=[parent], help="Display environment and config info."
    )
    info.set_defaults(func=handle_info)


def main() -> None:
    """
    Main CLI entrypoint; pyproject.toml's [project.scripts] points here.

    With no subcommand, help is shown and the exit code is USER_ERROR.
    """
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="bindrel",
        description="bindrel: release generated language bindings into a package repository.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)

    args = root_parser.parse_args()

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
