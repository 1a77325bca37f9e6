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
"""Utilities for identifying the compiler toolchains used by a CMake project.

The toolchains reply only gives the compiler path, id and version. Everything
else needed to run the analyzer (toolset version, host/target architecture,
plugin, rulesets and the VS Command Prompt) is found by walking a fixed layout
relative to the compiler binary. Each supported layout is a ToolchainLayout.
"""

import os
import logging
from typing import Dict, Optional, Protocol, Tuple

from lib.analysis_types import IncludePath, ToolchainInfo
from lib.cmake_reply_types import ToolchainEntry, parse_toolchains_reply, read_reply_file
from lib.constants import (
    ANALYZER_PLUGIN_NAME,
    HOST_ARCH_FOLDERS,
    MSVC_COMPILER_ID,
    RELATIVE_COMMAND_PROMPT_PATH,
    RELATIVE_RULESET_PATH,
    RELATIVE_TOOLSET_PATH,
    SUPPORTED_LANGUAGES,
    AnalyzerPluginNotFoundError,
    MissingReplyError,
    NoSupportedToolchainError,
    UnknownToolchainLayoutError,
)
from lib.file_utils import get_relative_to

logger = logging.getLogger(__name__)


class ToolchainLayout(Protocol):
    """Filesystem layout of a compiler installation."""

    compiler_id: str

    def toolset_version(self, compiler_path: str) -> str:
        ...

    def host_target_arch(self, compiler_path: str) -> Tuple[str, str]:
        ...

    def plugin_path(self, toolchain: ToolchainInfo) -> str:
        ...

    def ruleset_directory(self, toolchain: ToolchainInfo) -> Optional[str]:
        ...

    def environment_script(self, toolchain: ToolchainInfo) -> str:
        ...

    def environment_arch(self, toolchain: ToolchainInfo) -> str:
        ...


class MsvcToolchainLayout:
    """Visual Studio 2017+ layout: <VS>/VC/Tools/MSVC/<toolset>/bin/Host<host>/<target>/cl.exe"""

    compiler_id = MSVC_COMPILER_ID

    def toolset_version(self, compiler_path: str) -> str:
        return os.path.basename(get_relative_to(compiler_path, RELATIVE_TOOLSET_PATH))

    def host_target_arch(self, compiler_path: str) -> Tuple[str, str]:
        """Return (host_arch, target_arch) from the folders containing cl.exe.

        Raises:
            UnknownToolchainLayoutError: If the host folder is not Hostx86 or Hostx64
        """
        target_dir = os.path.dirname(compiler_path)
        host_dir = os.path.dirname(target_dir)
        host_folder = os.path.basename(host_dir)
        host_arch = HOST_ARCH_FOLDERS.get(host_folder.lower())
        if host_arch is None:
            raise UnknownToolchainLayoutError(f"Unknown MSVC toolset layout: unexpected host folder '{host_folder}' in {compiler_path}")
        return host_arch, os.path.basename(target_dir)

    def plugin_path(self, toolchain: ToolchainInfo) -> str:
        """Find EspXEngine.dll, which only exists in the host/host bin directory of the toolset.

        Raises:
            AnalyzerPluginNotFoundError: If the plugin does not exist
        """
        host_dir = os.path.dirname(os.path.dirname(toolchain.compiler_path))
        plugin = os.path.join(host_dir, toolchain.host_arch, ANALYZER_PLUGIN_NAME)
        if os.path.isfile(plugin):
            return plugin
        raise AnalyzerPluginNotFoundError(f"Unable to find: {plugin}")

    def ruleset_directory(self, toolchain: ToolchainInfo) -> Optional[str]:
        """Return the official ruleset directory shipped with Visual Studio, None if not found."""
        ruleset_dir = get_relative_to(toolchain.compiler_path, RELATIVE_RULESET_PATH)
        return ruleset_dir if os.path.isdir(ruleset_dir) else None

    def environment_script(self, toolchain: ToolchainInfo) -> str:
        return get_relative_to(toolchain.compiler_path, RELATIVE_COMMAND_PROMPT_PATH)

    def environment_arch(self, toolchain: ToolchainInfo) -> str:
        if toolchain.host_arch == toolchain.target_arch:
            return toolchain.host_arch
        return f"{toolchain.host_arch}_{toolchain.target_arch}"


MSVC_LAYOUT = MsvcToolchainLayout()


def create_toolchain_info(toolchain: ToolchainEntry, layout: ToolchainLayout = MSVC_LAYOUT) -> ToolchainInfo:
    """Build ToolchainInfo from a toolchains reply entry and the compiler's install layout.

    Raises:
        UnknownToolchainLayoutError: If the compiler path does not match the layout
    """
    host_arch, target_arch = layout.host_target_arch(toolchain.compiler_path)
    return ToolchainInfo(
        language=toolchain.language,
        compiler_path=toolchain.compiler_path,
        version=toolchain.compiler_version,
        implicit_includes=tuple(IncludePath(include, True) for include in toolchain.implicit_include_directories),
        toolset_version=layout.toolset_version(toolchain.compiler_path),
        host_arch=host_arch,
        target_arch=target_arch,
    )


def load_toolchain_map(toolchains_response_file: Optional[str], layout: ToolchainLayout = MSVC_LAYOUT) -> Dict[str, ToolchainInfo]:
    """Parse the toolchains reply and find the supported toolchain of each language.

    Args:
        toolchains_response_file: Absolute path to toolchains-v1-xxx.json (None if CMake gave none)
        layout: Compiler layout used to select and describe toolchains

    Returns:
        Mapping from language ("C", "CXX") to ToolchainInfo

    Raises:
        MissingReplyError: If the toolchains reply is absent
        NoSupportedToolchainError: If neither C nor C++ uses the supported compiler
        UnknownToolchainLayoutError: If a supported compiler has an unknown layout
    """
    if not toolchains_response_file or not os.path.isfile(toolchains_response_file):
        raise MissingReplyError(f"Failed to load toolchains response from CMake API: {toolchains_response_file}")

    entries = parse_toolchains_reply(read_reply_file(toolchains_response_file), document=os.path.basename(toolchains_response_file))

    toolchain_map: Dict[str, ToolchainInfo] = {}
    for language in SUPPORTED_LANGUAGES:
        entry = next((t for t in entries if t.language == language and t.compiler_id == layout.compiler_id), None)
        if entry is None:
            logger.debug("No %s toolchain found for %s", layout.compiler_id, language)
            continue
        toolchain_map[language] = create_toolchain_info(entry, layout)
        logger.info("Using %s compiler %s (toolset %s)", language, entry.compiler_path, toolchain_map[language].toolset_version)

    if not toolchain_map:
        raise NoSupportedToolchainError(f"Use of {layout.compiler_id} is required for either/both C or C++.")

    return toolchain_map
