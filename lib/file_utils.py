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
"""File and path utilities for resolving user inputs and comparing paths."""

import os
import logging
from typing import List, Mapping, Optional

from lib.constants import ConfigurationError, INPUT_PATH_SEPARATOR, WORKSPACE_ENV_VAR

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Normalize a path for comparison (separators, '..', and case on Windows)."""
    return os.path.normcase(os.path.normpath(path))


def get_relative_to(from_path: str, relative_path: str) -> str:
    """Join a relative path onto a file/directory path and normalize the result.

    Args:
        from_path: Path to join the relative path to (a file path counts as a directory level)
        relative_path: Relative path to append (e.g. "../../..")

    Returns:
        Normalized path
    """
    return os.path.normpath(os.path.join(from_path, relative_path))


def is_directory_empty(directory: Optional[str]) -> bool:
    """Check if a directory is unset, does not exist or has no entries.

    Args:
        directory: Directory to check

    Returns:
        True if the directory is missing or empty
    """
    if not directory or not os.path.isdir(directory):
        return True
    return len(os.listdir(directory)) == 0


def is_subdirectory(parent_dir: str, sub_dir: str) -> bool:
    """Check if sub_dir is parent_dir or lies beneath it.

    The comparison is done on whole path components after normalization, so
    '/repo/third_party_other' is not beneath '/repo/third_party'.

    Args:
        parent_dir: Candidate ancestor directory
        sub_dir: Directory to test

    Returns:
        True if parent_dir is an ancestor of (or equal to) sub_dir
    """
    parent = normalize_path(parent_dir)
    child = normalize_path(sub_dir)
    if child == parent:
        return True
    return child.startswith(parent.rstrip(os.sep) + os.sep)


def get_workspace_root(env: Optional[Mapping[str, str]] = None) -> str:
    """Return the root that relative input paths are resolved against.

    Uses GITHUB_WORKSPACE when set, otherwise the current working directory.
    """
    if env is None:
        env = os.environ
    return env.get(WORKSPACE_ENV_VAR) or os.getcwd()


def resolve_input_path(input_path: Optional[str], workspace: str, name: str = "input", required: bool = False) -> Optional[str]:
    """Resolve an input path, making non-absolute paths relative to the workspace root.

    Args:
        input_path: Path given by the user (may be empty)
        workspace: Workspace root directory
        name: Input name used in error messages
        required: If True the input must be non-empty

    Returns:
        Absolute path, or None if the input is empty and not required

    Raises:
        ConfigurationError: If a required input is empty
    """
    if not input_path:
        if required:
            raise ConfigurationError(f"{name} input path can not be empty.")
        return None

    if not os.path.isabs(input_path):
        input_path = os.path.join(workspace, input_path)

    return os.path.normpath(input_path)


def resolve_input_paths(input_paths: Optional[str], workspace: str, name: str = "input", required: bool = False, separator: str = INPUT_PATH_SEPARATOR) -> List[str]:
    """Resolve a separator-delimited list of input paths.

    Args:
        input_paths: Paths given by the user separated by separator (may be empty)
        workspace: Workspace root directory
        name: Input name used in error messages
        required: If True at least one path must be given
        separator: Separator between paths

    Returns:
        List of absolute paths (empty entries are dropped)

    Raises:
        ConfigurationError: If required and no paths are given
    """
    if not input_paths:
        if required:
            raise ConfigurationError(f"{name} input paths can not be empty.")
        return []

    resolved = []
    for input_path in input_paths.split(separator):
        path = resolve_input_path(input_path.strip(), workspace, name)
        if path:
            resolved.append(path)

    logger.debug("Resolved %s: %s", name, resolved)
    return resolved
