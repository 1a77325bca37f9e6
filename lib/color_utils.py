#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# ****************************************************************************************************************************************************
"""Colored console messages (colorama) for the code analysis command line."""

import os
import sys
import logging
from typing import Optional, TextIO

from colorama import Fore, Style, init

logger = logging.getLogger(__name__)

# Keep escape codes when stdout is piped (e.g. CI log capture); --no-color disables them
init(autoreset=False, strip=False)


class Colors:
    """Color codes for terminal output, cleared by disable()."""

    RED = Fore.RED
    GREEN = Fore.GREEN
    YELLOW = Fore.YELLOW
    CYAN = Fore.CYAN
    WHITE = Fore.WHITE

    RESET = Style.RESET_ALL
    BRIGHT = Style.BRIGHT
    DIM = Style.DIM

    @staticmethod
    def disable() -> None:
        """Replace every code by an empty string for plain text output."""
        for attr in dir(Colors):
            if not attr.startswith("_") and attr != "disable":
                setattr(Colors, attr, "")


def colored(text: str, color: str = "", style: str = "") -> str:
    """Wrap text in style and color codes; text without a color is returned unchanged."""
    if not color:
        return text
    return f"{style}{color}{text}{Colors.RESET}"


def _emit(text: str, color: str, label: str, prefix: bool, file: TextIO) -> None:
    message = f"{label}: {text}" if prefix else text
    print(colored(message, color), file=file)


def print_success(text: str, file: Optional[TextIO] = None, prefix: bool = False) -> None:
    """Print a green message to stdout, optionally prefixed with 'Success: '."""
    _emit(text, Colors.GREEN, "Success", prefix, file or sys.stdout)


def print_error(text: str, file: Optional[TextIO] = None, prefix: bool = True) -> None:
    """Print a red message to stderr, prefixed with 'Error: ' by default."""
    _emit(text, Colors.RED, "Error", prefix, file or sys.stderr)


def print_warning(text: str, file: Optional[TextIO] = None, prefix: bool = True) -> None:
    _emit(text, Colors.YELLOW, "Warning", prefix, file or sys.stderr)


def print_info(text: str, file: Optional[TextIO] = None) -> None:
    _emit(text, Colors.CYAN, "", False, file or sys.stdout)


def should_use_color(force_color: bool = False, no_color: bool = False, stream: Optional[TextIO] = None) -> bool:
    """Decide whether output is colored.

    --no-color wins over everything, then forcing, then the NO_COLOR convention
    (no-color.org). Otherwise color is used only when the stream is a terminal.

    Args:
        force_color: Color even when not writing to a terminal
        no_color: Never color
        stream: Stream that is written to (default: sys.stdout)
    """
    if no_color:
        return False
    if force_color:
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return (stream or sys.stdout).isatty()
