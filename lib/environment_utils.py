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
"""Build the environment cl.exe runs in during analysis."""

import os
import logging
import subprocess
from typing import Dict, Mapping, Optional

from lib.analysis_types import CompilerCommandOptions, ToolchainInfo
from lib.constants import (
    ENV_EMIT_SARIF,
    ENV_EXCLUDE_PATH,
    ENV_INCLUDE,
    ENV_LIB,
    ENV_PATH_SEPARATOR,
    EXTRACTED_ENV_VARS,
    VC_ENV_SCRIPT,
    EnvironmentExtractionError,
)
from lib.toolchain_utils import MSVC_LAYOUT, ToolchainLayout

logger = logging.getLogger(__name__)


def parse_environment_output(output: str) -> Dict[str, str]:
    """Extract INCLUDE and LIB from 'set' style NAME=value lines.

    Args:
        output: Standard output of the environment script

    Returns:
        Dictionary with INCLUDE and LIB (empty strings when not present)
    """
    env = {name: "" for name in EXTRACTED_ENV_VARS}
    for line in output.splitlines():
        name, sep, value = line.partition("=")
        if sep and name in env:
            env[name] = value
    return env


def extract_environment_from_command_prompt(toolchain: ToolchainInfo, layout: ToolchainLayout = MSVC_LAYOUT, script: str = VC_ENV_SCRIPT) -> Dict[str, str]:
    """Extract the implicit includes/libs of a toolset from its VS Command Prompt.

    MSVC does not populate the CMake API toolchain.implicit.includeDirectories
    property, so the environment set up by vcvarsall.bat is used instead.

    Args:
        toolchain: Toolchain whose command prompt is used
        layout: Compiler layout locating vcvarsall.bat
        script: Wrapper script printing the environment after running vcvarsall.bat

    Returns:
        Dictionary with INCLUDE and LIB

    Raises:
        EnvironmentExtractionError: If the script cannot be run or exits with non-zero code
    """
    command_prompt = layout.environment_script(toolchain)
    arch = layout.environment_arch(toolchain)

    logger.info("Extracting environment from VS Command Prompt")
    try:
        result = subprocess.run([script, command_prompt, arch, toolchain.toolset_version], capture_output=True, text=True, errors="replace")
    except (OSError, ValueError) as e:
        raise EnvironmentExtractionError(f"Failed to run VS Command Prompt to collect implicit includes/libs: {e}") from e

    if result.returncode != 0:
        logger.debug("%s", result.stdout)
        raise EnvironmentExtractionError("Failed to run VS Command Prompt to collect implicit includes/libs")

    return parse_environment_output(result.stdout)


def get_common_analyze_environment(
    toolchain: ToolchainInfo, options: CompilerCommandOptions, layout: ToolchainLayout = MSVC_LAYOUT, base_env: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """Construct the environment common to all source files of a toolchain.

    Args:
        toolchain: Toolchain being used
        options: Compiler feature options
        layout: Compiler layout locating vcvarsall.bat
        base_env: Ambient environment to pass through (default: os.environ)

    Returns:
        Mapping of environment variables for cl.exe
    """
    if base_env is None:
        base_env = os.environ

    env = {
        ENV_EMIT_SARIF: "1",  # SARIF compatibility mode
        ENV_EXCLUDE_PATH: base_env.get(ENV_EXCLUDE_PATH, ""),
        ENV_INCLUDE: base_env.get(ENV_INCLUDE, ""),
        ENV_LIB: base_env.get(ENV_LIB, ""),
    }

    if options.load_implicit_compiler_env:
        command_prompt_env = extract_environment_from_command_prompt(toolchain, layout)
        # exclude all implicit includes from analysis
        env[ENV_EXCLUDE_PATH] += ENV_PATH_SEPARATOR + command_prompt_env[ENV_INCLUDE]
        env[ENV_INCLUDE] += ENV_PATH_SEPARATOR + command_prompt_env[ENV_INCLUDE]
        env[ENV_LIB] += ENV_PATH_SEPARATOR + command_prompt_env[ENV_LIB]

    return env
