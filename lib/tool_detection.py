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
"""Locate the external tools the analysis drives.

Only cmake is looked up on PATH; cl.exe and vcvarsall.bat are found from the
CMake toolchains reply. Lookups are cached for the lifetime of the process.
"""

import shutil
import logging
import subprocess
from typing import Optional, Dict, Sequence
from dataclasses import dataclass

from lib.constants import CMAKE_COMMANDS

logger = logging.getLogger(__name__)

# Lookup results keyed by tool name
_tool_cache: Dict[str, "ToolInfo"] = {}


@dataclass
class ToolInfo:
    """Result of looking up an external tool.

    Attributes:
        command: Absolute path usable with subprocess (None when not found)
        version: First line of the tool's '--version' output, if it could be queried
        error_message: Why the tool was not found (None when found)
    """

    command: Optional[str]
    version: Optional[str]
    error_message: Optional[str] = None

    def is_found(self) -> bool:
        return self.command is not None


def clear_cache() -> None:
    """Forget all cached lookups (used by tests and after PATH changes)."""
    _tool_cache.clear()
    logger.debug("Tool lookup cache cleared")


def query_version(command: str, timeout: int = 5) -> Optional[str]:
    """Return the first line printed by '<command> --version', None if it fails."""
    try:
        result = subprocess.run([command, "--version"], capture_output=True, text=True, check=True, timeout=timeout)
    except (subprocess.CalledProcessError, OSError, subprocess.TimeoutExpired) as e:
        logger.debug("'%s --version' failed: %s", command, e)
        return None
    first_line = result.stdout.strip().splitlines()
    return first_line[0].strip() if first_line else None


def find_tool(name: str, candidates: Sequence[str]) -> ToolInfo:
    """Find the first candidate executable on PATH.

    Args:
        name: Cache key and display name of the tool
        candidates: Executable names tried in order

    Returns:
        ToolInfo for the first candidate found, or with error_message listing the candidates tried
    """
    cached = _tool_cache.get(name)
    if cached is not None:
        return cached

    tool_info = ToolInfo(command=None, version=None, error_message=f"not in PATH (tried: {', '.join(candidates)})")
    for candidate in candidates:
        resolved = shutil.which(candidate)
        if resolved:
            tool_info = ToolInfo(command=resolved, version=query_version(resolved))
            logger.debug("Found %s at %s (%s)", name, resolved, tool_info.version or "unknown version")
            break
        logger.debug("%s not in PATH", candidate)

    _tool_cache[name] = tool_info
    return tool_info


def find_cmake() -> ToolInfo:
    """Find cmake on PATH."""
    return find_tool("cmake", CMAKE_COMMANDS)
