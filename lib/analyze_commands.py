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
"""Assemble the cl.exe /analyze command line of every source file in a CMake project.

Pipeline:
    load_cmake_api_replies -> load_toolchain_map + load_compile_commands
    -> common arguments/environment per toolchain (memoized by compiler path)
    -> one AnalyzeCommand per source file
"""

import os
import logging
from typing import Callable, Dict, Generic, List, Mapping, Optional, Tuple, TypeVar

from lib.analysis_types import AnalyzeCommand, CompileCommand, CompilerCommandOptions, ToolchainInfo, freeze_environment
from lib.cmake_api import load_cmake_api_replies
from lib.compile_commands import load_compile_commands, split_arguments
from lib.constants import (
    FLAG_ANALYZE_EXTERNAL,
    FLAG_ANALYZE_LOG,
    FLAG_ANALYZE_LOG_FORMAT,
    FLAG_ANALYZE_ONLY,
    FLAG_ANALYZE_PLUGIN,
    FLAG_ANALYZE_QUIET,
    FLAG_ANALYZE_RULESET,
    FLAG_ANALYZE_RULESET_DIR,
    FLAG_DEFINE,
    FLAG_EXTERNAL_INCLUDE,
    FLAG_EXTERNAL_WARNING_LEVEL,
    FLAG_INCLUDE,
    SARIF_EXTENSION,
)
from lib.environment_utils import get_common_analyze_environment
from lib.ruleset_utils import find_ruleset
from lib.toolchain_utils import MSVC_LAYOUT, ToolchainLayout, load_toolchain_map

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MemoizedResolver(Generic[T]):
    """Computes a value per toolchain on first use and returns the same object afterwards.

    Values are keyed by compiler path and written at most once per key.
    """

    def __init__(self, compute: Callable[[ToolchainInfo], T]):
        self._compute = compute
        self._values: Dict[str, T] = {}

    def __call__(self, toolchain: ToolchainInfo) -> T:
        key = toolchain.compiler_path
        if key not in self._values:
            logger.debug("Resolving %s for %s", getattr(self._compute, "__name__", "value"), key)
            self._values[key] = self._compute(toolchain)
        return self._values[key]

    def __len__(self) -> int:
        return len(self._values)


def get_common_analyze_arguments(
    toolchain: ToolchainInfo, options: CompilerCommandOptions, workspace: str, layout: ToolchainLayout = MSVC_LAYOUT
) -> List[str]:
    """Construct the command line arguments common to all source files of a toolchain.

    Args:
        toolchain: Toolchain being used
        options: Compiler feature options
        workspace: Root that a relative ruleset path is resolved against
        layout: Compiler layout locating the plugin and rulesets

    Returns:
        List of analyze arguments common to the given toolchain

    Raises:
        AnalyzerPluginNotFoundError: If EspXEngine.dll is missing
        RulesetNotFoundError: If the requested ruleset cannot be found
    """
    args = [FLAG_ANALYZE_ONLY, FLAG_ANALYZE_QUIET, FLAG_ANALYZE_LOG_FORMAT]
    args.append(f"{FLAG_ANALYZE_PLUGIN}{layout.plugin_path(toolchain)}")

    ruleset_directory = layout.ruleset_directory(toolchain)
    ruleset_path = find_ruleset(options.ruleset, ruleset_directory, workspace)
    if ruleset_path is not None:
        args.append(f"{FLAG_ANALYZE_RULESET}{ruleset_path}")
        # official rulesets may include each other by name
        if ruleset_directory is not None:
            args.append(f"{FLAG_ANALYZE_RULESET_DIR}{ruleset_directory}")
    else:
        logger.warning("Ruleset is not being used, all warnings will be enabled.")

    if options.ignore_system_headers:
        args.append(FLAG_EXTERNAL_WARNING_LEVEL)
        args.append(FLAG_ANALYZE_EXTERNAL)

    if options.additional_args:
        args.extend(split_arguments(options.additional_args))

    return args


class AnalyzeCommandAssembler:
    """Turns CompileCommands into AnalyzeCommands for a fixed set of toolchains.

    The common arguments and environment of each toolchain are computed once and
    shared (by reference) by every AnalyzeCommand using that toolchain.
    """

    def __init__(
        self,
        toolchain_map: Mapping[str, ToolchainInfo],
        results_dir: str,
        options: CompilerCommandOptions,
        workspace: str,
        layout: ToolchainLayout = MSVC_LAYOUT,
        base_env: Optional[Mapping[str, str]] = None,
    ):
        self.toolchain_map = dict(toolchain_map)
        self.results_dir = results_dir
        self.options = options

        def common_arguments(toolchain: ToolchainInfo) -> Tuple[str, ...]:
            return tuple(get_common_analyze_arguments(toolchain, options, workspace, layout))

        def common_environment(toolchain: ToolchainInfo) -> Mapping[str, str]:
            return freeze_environment(get_common_analyze_environment(toolchain, options, layout, base_env))

        self.common_args = MemoizedResolver(common_arguments)
        self.common_env = MemoizedResolver(common_environment)
        self._sarif_counter = 0

    def include_arguments(self, toolchain: ToolchainInfo, command: CompileCommand) -> List[str]:
        """Return include flags: toolchain implicit, then per-command, then user ignored includes."""
        args = []
        for include in toolchain.implicit_includes + command.includes + self.options.ignored_include_paths:
            if self.options.ignore_system_headers and include.is_system:
                args.append(f"{FLAG_EXTERNAL_INCLUDE}{include.path}")
            else:
                args.append(f"{FLAG_INCLUDE}{include.path}")
        return args

    def next_sarif_log(self, source: str) -> str:
        """Reserve a unique SARIF log path for a source file."""
        sarif_log = os.path.join(self.results_dir, f"{os.path.basename(source)}.{self._sarif_counter}{SARIF_EXTENSION}")
        self._sarif_counter += 1
        return sarif_log

    def assemble_command(self, command: CompileCommand) -> Optional[AnalyzeCommand]:
        """Build the AnalyzeCommand of one source, None if its language has no supported toolchain."""
        toolchain = self.toolchain_map.get(command.language)
        if toolchain is None:
            logger.debug("Skipping %s source without supported toolchain: %s", command.language, command.source)
            return None

        common_args = self.common_args(toolchain)
        common_env = self.common_env(toolchain)

        args = split_arguments(command.raw_args)
        args.extend(self.include_arguments(toolchain, command))
        args.extend(f"{FLAG_DEFINE}{define}" for define in command.defines)
        args.append(command.source)

        sarif_log = self.next_sarif_log(command.source)
        args.append(f"{FLAG_ANALYZE_LOG}{sarif_log}")

        return AnalyzeCommand(
            source=command.source,
            compiler_path=toolchain.compiler_path,
            args=tuple(args) + common_args,
            env=common_env,
            sarif_log=sarif_log,
            common_args=common_args,
        )

    def assemble(self, compile_commands: List[CompileCommand]) -> List[AnalyzeCommand]:
        """Build AnalyzeCommands for all compile commands with a supported toolchain, in order."""
        analyze_commands = []
        for command in compile_commands:
            analyze_command = self.assemble_command(command)
            if analyze_command is not None:
                analyze_commands.append(analyze_command)
        return analyze_commands


def create_analysis_commands(
    build_root: str, results_dir: str, options: CompilerCommandOptions, workspace: str, layout: ToolchainLayout = MSVC_LAYOUT
) -> List[AnalyzeCommand]:
    """Load everything needed to compile and analyze each source file of a CMake project.

    Args:
        build_root: Build directory of the CMake project
        results_dir: Directory the SARIF files are written to
        options: Compiler feature options
        workspace: Root that relative user paths are resolved against
        layout: Compiler layout of the supported toolchain

    Returns:
        One AnalyzeCommand per analyzable source file
    """
    reply_index_info = load_cmake_api_replies(build_root)
    toolchain_map = load_toolchain_map(reply_index_info.toolchains_response_file, layout)
    compile_commands = load_compile_commands(reply_index_info.codemodel_response_file, options.ignored_target_paths)

    assembler = AnalyzeCommandAssembler(toolchain_map, results_dir, options, workspace, layout)
    # resolve every toolchain up front so setup failures abort before any analysis
    for toolchain in toolchain_map.values():
        assembler.common_args(toolchain)
        assembler.common_env(toolchain)

    analyze_commands = assembler.assemble(compile_commands)
    logger.info("Created %d analysis commands from %d compile commands", len(analyze_commands), len(compile_commands))
    return analyze_commands
