# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""Helper functions"""

import logging
import sys


def configure_logger(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Set logging options"""
    log = logging.getLogger()
    logging.basicConfig(
        encoding="utf-8",
        format="[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if debug:
        log.setLevel(logging.DEBUG)
    elif verbose:
        log.setLevel(logging.INFO)
    else:
        log.setLevel(logging.WARNING)

    return log


def log_progress(message: str) -> None:
    """Log progress messages to stderr"""
    # Clear line if no message is given
    if not message:
        sys.stderr.write("\r\033[K")
        sys.stderr.flush()
    else:
        sys.stderr.write(f"\r\033[K⏳ {message}")
        sys.stderr.flush()


def censor_half_string(string: str) -> str:
    """Replace the second half of a string (rounded up) by asterisks"""
    visible = len(string) // 2
    return string[:visible] + "*" * (len(string) - visible)


def dict_to_pretty_string(dictionary: dict, sensible_keys: None | list[str] = None) -> str:
    """Render a (nested) dict as indented `key:` / value lines. Values of
    `sensible_keys` on the top level are half censored, the input is not modified"""
    censored = {
        key: censor_half_string(str(value)) if value and key in (sensible_keys or []) else value
        for key, value in dictionary.items()
    }

    def pretty(d: dict, indent: int = 0) -> str:
        lines = ""
        for key, value in d.items():
            lines += "  " * indent + f"{key}:\n"
            if isinstance(value, dict):
                lines += pretty(value, indent + 1)
            else:
                lines += "  " * (indent + 1) + f"{value}\n"
        return lines

    return pretty(censored)
