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
"""Extract per-source compile information from the CMake codemodel and target replies."""

import os
import logging
from typing import Iterable, List, Optional

from lib.analysis_types import CompileCommand, IncludePath
from lib.cmake_reply_types import CompileGroup, parse_codemodel_reply, parse_target_reply, read_reply_file
from lib.constants import MissingReplyError
from lib.file_utils import is_subdirectory

logger = logging.getLogger(__name__)


def split_arguments(arg_string: str) -> List[str]:
    """Split a command line string into arguments the way cl.exe receives them.

    Rules:
    - Arguments are separated by whitespace outside of double quotes
    - Double quotes group text and are removed
    - Inside quotes, \\" is a literal quote
    - Any other backslash is kept as-is (Windows paths)

    Args:
        arg_string: Command line fragment (e.g. '/DWIN32 /W4 "/Fo C:\\out dir\\"')

    Returns:
        List of arguments
    """
    args: List[str] = []
    current: List[str] = []
    in_quotes = False
    escaped = False

    def append(c: str) -> None:
        nonlocal escaped
        if escaped and c != '"':
            current.append("\\")
        current.append(c)
        escaped = False

    for c in arg_string:
        if c == '"':
            if not escaped:
                in_quotes = not in_quotes
            else:
                append(c)
            continue

        if c == "\\" and escaped:
            append(c)
            continue

        if c == "\\" and in_quotes:
            escaped = True
            continue

        if c.isspace() and not in_quotes:
            if current:
                args.append("".join(current))
                current = []
            continue

        append(c)

    if escaped:
        current.append("\\")
    if current:
        args.append("".join(current).strip())

    return args


def create_compile_command(group: CompileGroup, source: str) -> CompileCommand:
    """Create the CompileCommand of one source file in a compile group."""
    return CompileCommand(
        source=source,
        language=group.language,
        standard=group.standard,
        raw_args=" ".join(group.fragments),
        includes=tuple(IncludePath(include.path, include.is_system) for include in group.includes),
        defines=group.defines,
    )


def load_compile_commands(codemodel_response_file: Optional[str], excluded_target_paths: Iterable[str] = ()) -> List[CompileCommand]:
    """Parse the codemodel reply and each target reply into per-source compile commands.

    Args:
        codemodel_response_file: Absolute path to codemodel-v2-xxx.json (None if CMake gave none)
        excluded_target_paths: Targets defined in or beneath these directories are skipped

    Returns:
        One CompileCommand for each compiled source file, in codemodel order

    Raises:
        MissingReplyError: If the codemodel reply or a target reply is absent
        ReplyFormatError: If a reply does not have the expected shape
    """
    if not codemodel_response_file or not os.path.isfile(codemodel_response_file):
        raise MissingReplyError(f"Failed to load codemodel response from CMake API: {codemodel_response_file}")

    excluded = list(excluded_target_paths)
    codemodel = parse_codemodel_reply(read_reply_file(codemodel_response_file), document=os.path.basename(codemodel_response_file))
    reply_dir = os.path.dirname(codemodel_response_file)

    compile_commands: List[CompileCommand] = []
    for target_info in codemodel.targets:
        target_dir = codemodel.target_directory(target_info)
        if any(is_subdirectory(exclude_path, target_dir) for exclude_path in excluded):
            logger.info("Skipping target '%s' defined in ignored path: %s", target_info.name, target_dir)
            continue

        target_file = os.path.join(reply_dir, target_info.json_file)
        target = parse_target_reply(read_reply_file(target_file), document=target_info.json_file)
        for group in target.compile_groups:
            for source_index in group.source_indexes:
                source = os.path.normpath(os.path.join(codemodel.source_root, target.sources[source_index]))
                compile_commands.append(create_compile_command(group, source))

    logger.debug("Loaded %d compile commands from %d targets", len(compile_commands), len(codemodel.targets))
    return compile_commands
