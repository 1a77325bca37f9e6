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
"""Utilities for querying a configured CMake build tree through the CMake file API.

The file API is a query/reply protocol: a client writes a query.json under
``<build>/.cmake/api/v1/query/<client>/``, reconfigures the build tree, and CMake
writes reply documents to ``<build>/.cmake/api/v1/reply/``. The newest reply set
is described by the lexicographically greatest ``index-*.json`` file.
"""

import os
import re
import json
import logging
import subprocess
from typing import List, Optional

from packaging.version import InvalidVersion, Version

from lib.analysis_types import ReplyIndexInfo
from lib.cmake_reply_types import parse_index_reply, read_reply_file
from lib.constants import (
    CMAKE_API_CLIENT_NAME,
    CMAKE_API_DIR,
    CMAKE_API_INDEX_PREFIX,
    CMAKE_API_QUERY_FILE,
    CODEMODEL_KIND,
    CODEMODEL_VERSION,
    MIN_CMAKE_VERSION,
    TOOLCHAINS_KIND,
    TOOLCHAINS_VERSION,
    ConfigurationError,
    MissingReplyError,
    ToolInvocationError,
    ToolNotFoundError,
    UnsupportedVersionError,
)
from lib.file_utils import is_directory_empty
from lib.tool_detection import find_cmake

logger = logging.getLogger(__name__)

# Release segments plus an optional "-rcN" release candidate suffix
_RELEASE_RE = re.compile(r"(\d+(?:\.\d+)*)(?:-rc(\d+))?")


def create_api_query(api_dir: str, client_name: str = CMAKE_API_CLIENT_NAME) -> str:
    """Write the query file requesting the codemodel and toolchains replies.

    Args:
        api_dir: CMake API directory '<build>/.cmake/api/v1'
        client_name: Name of the file API client

    Returns:
        Path to the written query.json

    Raises:
        ConfigurationError: If the query file cannot be written
    """
    query_dir = os.path.join(api_dir, "query", client_name)
    query_file = os.path.join(query_dir, CMAKE_API_QUERY_FILE)
    query_data = {
        "requests": [
            {"kind": CODEMODEL_KIND, "version": CODEMODEL_VERSION},
            {"kind": TOOLCHAINS_KIND, "version": TOOLCHAINS_VERSION},
        ]
    }

    try:
        os.makedirs(query_dir, exist_ok=True)
        with open(query_file, "w", encoding="utf-8") as f:
            json.dump(query_data, f)
    except OSError as e:
        raise ConfigurationError(f"Failed to write {CMAKE_API_QUERY_FILE} file for CMake API: {e}") from e

    logger.debug("Wrote CMake API query: %s", query_file)
    return query_file


def find_reply_index_file(reply_dir: str) -> Optional[str]:
    """Find the most recent index reply.

    Index file names embed a sortable timestamp, so the newest reply is the
    lexicographically greatest name regardless of directory listing order.

    Args:
        reply_dir: CMake API reply directory '<build>/.cmake/api/v1/reply'

    Returns:
        Absolute path to the newest index-*.json, None if there is none
    """
    if not os.path.isdir(reply_dir):
        return None

    index_files: List[str] = [name for name in os.listdir(reply_dir) if name.startswith(CMAKE_API_INDEX_PREFIX)]
    if not index_files:
        return None

    return os.path.join(reply_dir, max(index_files))


def get_api_reply_index(api_dir: str, client_name: str = CMAKE_API_CLIENT_NAME) -> ReplyIndexInfo:
    """Load the information needed from the reply index file of the CMake API.

    Args:
        api_dir: CMake API directory '<build>/.cmake/api/v1'
        client_name: Name of the file API client whose responses are read

    Returns:
        ReplyIndexInfo with absolute response file paths

    Raises:
        MissingReplyError: If no index reply exists
        ReplyFormatError: If the index reply does not have the expected shape
    """
    reply_dir = os.path.join(api_dir, "reply")
    index_file = find_reply_index_file(reply_dir)
    if index_file is None:
        raise MissingReplyError(f"Failed to find CMake API index reply file in: {reply_dir}")

    index_reply = parse_index_reply(read_reply_file(index_file), client_name, document=os.path.basename(index_file))

    def response_path(kind: str) -> Optional[str]:
        json_file = index_reply.response_file(kind)
        return os.path.join(reply_dir, json_file) if json_file else None

    reply_index_info = ReplyIndexInfo(
        codemodel_response_file=response_path(CODEMODEL_KIND),
        toolchains_response_file=response_path(TOOLCHAINS_KIND),
        version=index_reply.cmake_version,
    )

    logger.info("Loaded '%s' reply generated from CMake API.", index_file)
    return reply_index_info


def is_version_supported(version: str, min_version: str = MIN_CMAKE_VERSION) -> bool:
    """Check a CMake version against the minimum, comparing dotted segments numerically.

    Only the leading numeric release segments are compared, so development
    builds such as "3.28.20240101-gabc123" compare by their release numbers.
    Release candidates ("3.20.5-rc1") compare below their final release.

    Args:
        version: Version reported by CMake (e.g. "3.28.1" or "3.29.0-rc1")
        min_version: Minimum supported version

    Returns:
        True if version >= min_version

    Raises:
        UnsupportedVersionError: If the version string has no numeric release part
    """
    match = _RELEASE_RE.match(version.strip())
    if not match:
        raise UnsupportedVersionError(f"Unable to parse CMake version '{version}'")
    try:
        release = match.group(1) if match.group(2) is None else f"{match.group(1)}rc{match.group(2)}"
        return Version(release) >= Version(min_version)
    except InvalidVersion as e:
        raise UnsupportedVersionError(f"Unable to parse CMake version '{version}'") from e


def run_cmake_configure(build_root: str) -> None:
    """Re-run CMake on an existing build directory to regenerate file API replies.

    Raises:
        ToolNotFoundError: If cmake is not found on PATH
        ToolInvocationError: If cmake exits with a non-zero code
    """
    cmake_tool = find_cmake()
    if not cmake_tool.is_found():
        raise ToolNotFoundError(f"cmake {cmake_tool.error_message}")
    assert cmake_tool.command is not None

    logger.info("Running CMake to generate reply data.")
    try:
        result = subprocess.run([cmake_tool.command, build_root], capture_output=True, text=True, errors="replace")
    except (OSError, ValueError) as e:
        raise ToolInvocationError(f"CMake failed to reconfigure project with error: {e}") from e

    if result.stdout:
        logger.debug("%s", result.stdout)

    if result.returncode != 0:
        error_output = (result.stderr or result.stdout or "").strip()
        raise ToolInvocationError(f"CMake failed to reconfigure project with error (exit code {result.returncode}): {error_output}")


def load_cmake_api_replies(build_root: str) -> ReplyIndexInfo:
    """Load reply data from the CMake API.

    This will:
     - Create a query file in the CMake API directory requesting the data needed
     - Re-run CMake on the build directory to generate reply data
     - Extract the required information from the index-xxx.json reply
     - Validate the CMake version to ensure the required reply data exists

    Args:
        build_root: Build directory of the CMake project

    Returns:
        ReplyIndexInfo extracted from the newest index-xxx.json reply

    Raises:
        ConfigurationError: If build_root is missing or empty
        ToolInvocationError: If cmake is missing or fails
        MissingReplyError: If no index reply was generated
        UnsupportedVersionError: If CMake is older than MIN_CMAKE_VERSION
    """
    if is_directory_empty(build_root):
        raise ConfigurationError(f"CMake build root must exist, be non-empty and be configured with CMake: {build_root}")

    api_dir = os.path.join(build_root, CMAKE_API_DIR)
    create_api_query(api_dir)
    run_cmake_configure(build_root)

    reply_index_info = get_api_reply_index(api_dir)
    if not is_version_supported(reply_index_info.version):
        raise UnsupportedVersionError(f"CMake version >= {MIN_CMAKE_VERSION} is required, found {reply_index_info.version}")

    return reply_index_info
