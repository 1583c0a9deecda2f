# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for bindrel.

Runs once per CLI command before any work happens:
  1. Validate the environment (Python version)
  2. Apply the effective log level to every bindrel logger
  3. Attach the configured log file, if any, to every bindrel logger
  4. Log the startup context
"""

from pathlib import Path
from typing import Optional

from bindrel.config.schema import GlobalConfig
from bindrel.logging.logger import get_logger, set_package_log_file, set_package_log_level
from bindrel.runtime.environment import check_minimum_python, get_system_info


def bootstrap(config: GlobalConfig, log_level: Optional[str] = None) -> None:
    """
    Put the process into a known state.

    Args:
        config: The validated global configuration.
        log_level: Command-line override; wins over `config.log_level`.
    """
    check_minimum_python()

    effective_level = log_level or config.log_level
    set_package_log_level(effective_level)

    log_file = Path(config.log_file) if config.log_file is not None else None
    set_package_log_file(log_file)

    logger = get_logger("bindrel.runtime")

    system_info = get_system_info()
    logger.info(
        "bindrel bootstrap complete",
        extra={
            "project": config.project_name,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "git": system_info.git_version,
        },
    )
