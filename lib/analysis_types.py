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
"""Type definitions for the code analysis pipeline.

This module contains the dataclasses passed between the lib modules. All of them
are created once per run and never mutated afterwards.
"""

from types import MappingProxyType
from typing import Mapping, Optional, Tuple
from dataclasses import dataclass, field

from lib.constants import ConfigurationError


@dataclass(frozen=True)
class ReplyIndexInfo:
    """Information extracted from the CMake file API index reply.

    Attributes:
        codemodel_response_file: Absolute path to the codemodel reply (None if not provided)
        toolchains_response_file: Absolute path to the toolchains reply (None if not provided)
        version: CMake version string that generated the replies
    """

    codemodel_response_file: Optional[str]
    toolchains_response_file: Optional[str]
    version: str


@dataclass(frozen=True)
class IncludePath:
    """Compiler include directory.

    Two include paths are equal when their paths are equal; is_system does not
    take part in comparison.

    Attributes:
        path: Absolute path to the include directory
        is_system: True if this is a CMake SYSTEM include
    """

    path: str
    is_system: bool = field(default=False, compare=False)


@dataclass(frozen=True)
class ToolchainInfo:
    """Compiler identity for one language.

    Attributes:
        language: "C" or "CXX"
        compiler_path: Absolute path to cl.exe
        version: Compiler version reported by CMake
        implicit_includes: Include directories the compiler uses implicitly
        toolset_version: MSVC toolset version inferred from the compiler path
        host_arch: Host architecture ("x86" or "x64")
        target_arch: Target architecture (name of the folder containing cl.exe)
    """

    language: str
    compiler_path: str
    version: str
    implicit_includes: Tuple[IncludePath, ...]
    toolset_version: str
    host_arch: str
    target_arch: str


@dataclass(frozen=True)
class CompileCommand:
    """Compilation information for one source file taken from the CMake targets."""

    source: str
    language: str
    standard: Optional[str]
    raw_args: str
    includes: Tuple[IncludePath, ...] = ()
    defines: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CompilerCommandOptions:
    """Options enabling/disabling compiler features for every analyzed source.

    Attributes:
        ignore_system_headers: Use /external options to ignore warnings in CMake SYSTEM headers
        load_implicit_compiler_env: Load implicit includes/libs from the VS Command Prompt
        ignored_target_paths: Skip CMake targets defined under these paths
        ignored_include_paths: Additional include paths excluded from analysis
        additional_args: Extra arguments appended to every analyzer command line
        ruleset: Ruleset path or name requested by the user (None for all checks)

    Raises:
        ConfigurationError: If ignored_include_paths is used without ignore_system_headers
    """

    ignore_system_headers: bool = True
    load_implicit_compiler_env: bool = True
    ignored_target_paths: Tuple[str, ...] = ()
    ignored_include_paths: Tuple[IncludePath, ...] = ()
    additional_args: str = ""
    ruleset: Optional[str] = None

    def __post_init__(self) -> None:
        if self.ignored_include_paths and not self.ignore_system_headers:
            raise ConfigurationError("Use of 'ignored include paths' requires 'ignore system headers' to be enabled")


@dataclass(frozen=True)
class AnalyzeCommand:
    """Everything required to run analysis on a single source file.

    Attributes:
        source: Absolute path to the source file being analyzed
        compiler_path: Absolute path to cl.exe
        args: Complete argument list passed to cl.exe
        env: Environment used when running cl.exe
        sarif_log: Path of the SARIF file cl.exe writes for this source
        common_args: Arguments shared by every source using the same toolchain (tail of args)
    """

    source: str
    compiler_path: str
    args: Tuple[str, ...]
    env: Mapping[str, str]
    sarif_log: str
    common_args: Tuple[str, ...] = ()


def freeze_environment(env: Mapping[str, str]) -> Mapping[str, str]:
    """Return a read-only copy of an environment mapping."""
    return MappingProxyType(dict(env))
