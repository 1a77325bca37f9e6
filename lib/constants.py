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
"""Shared constants for the MSVC code analysis tools.

This module provides centralized constants used across the lib modules
to ensure consistency and make it easy to adjust layouts and defaults.
"""

import os

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_INVALID_ARGS = 1
EXIT_RUNTIME_ERROR = 2
EXIT_TOOL_FAILED = 3
EXIT_KEYBOARD_INTERRUPT = 130

# =============================================================================
# CMake File API Constants
# =============================================================================

CMAKE_API_CLIENT_NAME = "client-msvc-code-analysis"
CMAKE_API_DIR = os.path.join(".cmake", "api", "v1")
CMAKE_API_QUERY_FILE = "query.json"
CMAKE_API_INDEX_PREFIX = "index-"

CODEMODEL_KIND = "codemodel"
CODEMODEL_VERSION = 2
TOOLCHAINS_KIND = "toolchains"
TOOLCHAINS_VERSION = 1

# Oldest CMake that writes the toolchains reply with implicit include directories
MIN_CMAKE_VERSION = "3.20.5"

CMAKE_COMMANDS = ["cmake"]

# =============================================================================
# MSVC Toolset Layout Constants
# =============================================================================

# Layouts are relative to the absolute path of cl.exe:
#   <VS>/VC/Tools/MSVC/<toolset>/bin/Host<host>/<target>/cl.exe
MSVC_COMPILER_ID = "MSVC"
SUPPORTED_LANGUAGES = ("C", "CXX")

RELATIVE_TOOLSET_PATH = os.path.join(*([os.pardir] * 4))
RELATIVE_RULESET_PATH = os.path.join(*([os.pardir] * 8), "Team Tools", "Static Analysis Tools", "Rule Sets")
RELATIVE_COMMAND_PROMPT_PATH = os.path.join(*([os.pardir] * 7), "Auxiliary", "Build", "vcvarsall.bat")

HOST_ARCH_FOLDERS = {"hostx86": "x86", "hostx64": "x64"}

ANALYZER_PLUGIN_NAME = "EspXEngine.dll"

# Wrapper that runs vcvarsall.bat and dumps the resulting environment
VC_ENV_SCRIPT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "vc_env.bat")

# Only these variables are taken from the VS Command Prompt environment
EXTRACTED_ENV_VARS = ("INCLUDE", "LIB")

# =============================================================================
# Analyzer Command Line Constants
# =============================================================================

FLAG_ANALYZE_ONLY = "/analyze:only"
FLAG_ANALYZE_QUIET = "/analyze:quiet"
FLAG_ANALYZE_LOG_FORMAT = "/analyze:log:format:sarif"
FLAG_ANALYZE_PLUGIN = "/analyze:plugin"
FLAG_ANALYZE_RULESET = "/analyze:ruleset"
FLAG_ANALYZE_RULESET_DIR = "/analyze:rulesetdirectory"
FLAG_ANALYZE_LOG = "/analyze:log"
FLAG_EXTERNAL_WARNING_LEVEL = "/external:W0"
FLAG_ANALYZE_EXTERNAL = "/analyze:external-"
FLAG_EXTERNAL_INCLUDE = "/external:I"
FLAG_INCLUDE = "/I"
FLAG_DEFINE = "/D"

SARIF_EXTENSION = ".sarif"

# Analyzer environment variables
ENV_EMIT_SARIF = "CAEmitSarifLog"
ENV_EXCLUDE_PATH = "CAExcludePath"
ENV_INCLUDE = "INCLUDE"
ENV_LIB = "LIB"
ENV_PATH_SEPARATOR = ";"

# =============================================================================
# Configuration Constants
# =============================================================================

WORKSPACE_ENV_VAR = "GITHUB_WORKSPACE"
INPUT_PATH_SEPARATOR = ";"

# Parallel processing
DEFAULT_MAX_WORKERS = 1  # Sequential, matches one cl.exe per source at a time

# =============================================================================
# Exception Classes
# =============================================================================


class CodeAnalysisError(Exception):
    """Base exception for all code analysis errors.

    All exceptions carry an exit_code attribute that indicates what exit
    code the program should use when this error is caught at the main
    entry point.
    """

    def __init__(self, message: str, exit_code: int = EXIT_RUNTIME_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


# Validation errors (EXIT_INVALID_ARGS)
class ConfigurationError(CodeAnalysisError):
    """Raised for a missing/empty build directory or an invalid option combination."""

    def __init__(self, message: str):
        super().__init__(message, EXIT_INVALID_ARGS)


# External tool errors (EXIT_TOOL_FAILED)
class ToolInvocationError(CodeAnalysisError):
    """Raised when an external tool (cmake, vcvarsall) fails."""

    def __init__(self, message: str, exit_code: int = EXIT_TOOL_FAILED):  # pylint: disable=useless-parent-delegation
        super().__init__(message, exit_code)


class ToolNotFoundError(ToolInvocationError):
    """Raised when an external tool cannot be found on PATH."""


class EnvironmentExtractionError(ToolInvocationError):
    """Raised when the VS Command Prompt environment cannot be extracted."""


# CMake reply errors (EXIT_RUNTIME_ERROR)
class MissingReplyError(CodeAnalysisError):
    """Raised when an expected CMake file API reply is absent."""


class ReplyFormatError(CodeAnalysisError):
    """Raised when a CMake file API reply is unreadable or has the wrong shape."""


class UnsupportedVersionError(CodeAnalysisError):
    """Raised when CMake is older than MIN_CMAKE_VERSION."""


# Toolchain errors (EXIT_RUNTIME_ERROR)
class UnknownToolchainLayoutError(CodeAnalysisError):
    """Raised when the compiler path does not follow a known toolset layout."""


class NoSupportedToolchainError(CodeAnalysisError):
    """Raised when neither C nor C++ is compiled with a supported compiler."""


class AnalyzerPluginNotFoundError(CodeAnalysisError):
    """Raised when the analyzer plugin is missing from the toolset."""


class RulesetNotFoundError(CodeAnalysisError):
    """Raised when a requested ruleset is neither local nor official."""


# Analysis errors (EXIT_RUNTIME_ERROR)
class NoAnalyzableSourcesError(CodeAnalysisError):
    """Raised when the project has no C/C++ sources that can be analyzed."""
