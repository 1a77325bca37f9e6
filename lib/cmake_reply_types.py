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
"""Typed views of the CMake file API reply documents.

Each reply kind used by the analysis (index, codemodel, target and toolchains)
is parsed into a small dataclass. A field that is absent or has the wrong JSON
type raises ReplyFormatError naming the reply file and the field location, e.g.
``codemodel-v2-1a2b.json: configurations[0].targets[3].jsonFile``.
"""

import os
import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Type, Union
from dataclasses import dataclass

from lib.constants import MissingReplyError, ReplyFormatError

logger = logging.getLogger(__name__)

_MISSING = object()


def read_reply_file(reply_file: str) -> Any:
    """Read and decode a JSON reply file.

    Args:
        reply_file: Absolute path to the JSON reply

    Returns:
        Decoded JSON data

    Raises:
        MissingReplyError: If the file does not exist
        ReplyFormatError: If the file cannot be read or is not valid JSON
    """
    if not os.path.isfile(reply_file):
        raise MissingReplyError(f"Failed to find CMake API reply file: {reply_file}")

    try:
        with open(reply_file, "r", encoding="utf-8") as f:
            return json.load(f)
    except (IOError, json.JSONDecodeError) as e:
        raise ReplyFormatError(f"Failed to read CMake API reply file {reply_file}: {e}") from e


class _ReplyReader:
    """Field accessor that reports the document and JSON location on errors."""

    def __init__(self, document: str):
        self.document = document

    def field(self, data: Any, key: str, expected: Union[Type[Any], Tuple[Type[Any], ...]], location: str, default: Any = _MISSING) -> Any:
        where = f"{location}.{key}" if location else key
        if not isinstance(data, dict):
            raise ReplyFormatError(f"{self.document}: expected object at '{location or '<root>'}'")
        value = data.get(key, _MISSING)
        if value is _MISSING or value is None:
            if default is not _MISSING:
                return default
            raise ReplyFormatError(f"{self.document}: missing field '{where}'")
        # bool is an int subclass, never accept it for numeric fields
        if isinstance(value, bool) and expected is int:
            raise ReplyFormatError(f"{self.document}: field '{where}' has type bool")
        if not isinstance(value, expected):
            raise ReplyFormatError(f"{self.document}: field '{where}' has type {type(value).__name__}")
        return value

    def items(self, data: Any, key: str, location: str, default: Any = _MISSING) -> List[Tuple[str, Any]]:
        values = self.field(data, key, list, location, default)
        where = f"{location}.{key}" if location else key
        return [(f"{where}[{i}]", value) for i, value in enumerate(values)]


# =============================================================================
# Index reply
# =============================================================================


@dataclass(frozen=True)
class ReplyResponse:
    """One response listed for a client query in the index reply."""

    kind: str
    json_file: Optional[str]


@dataclass(frozen=True)
class IndexReply:
    """Parsed index-*.json reply.

    Attributes:
        cmake_version: CMake version string (cmake.version.string)
        responses: Responses to this client's query.json
    """

    cmake_version: str
    responses: Tuple[ReplyResponse, ...]

    def response_file(self, kind: str) -> Optional[str]:
        """Return the jsonFile of the first response of the given kind, None if absent."""
        for response in self.responses:
            if response.kind == kind:
                return response.json_file
        return None


def parse_index_reply(data: Any, client_name: str, document: str = "index reply") -> IndexReply:
    """Parse an index reply for the given client.

    Raises:
        ReplyFormatError: If the reply has no entry for the client's query.json
    """
    reader = _ReplyReader(document)
    cmake = reader.field(data, "cmake", dict, "")
    version = reader.field(reader.field(cmake, "version", dict, "cmake"), "string", str, "cmake.version")

    reply = reader.field(data, "reply", dict, "")
    client = reader.field(reply, client_name, dict, "reply")
    query = reader.field(client, "query.json", dict, f"reply.{client_name}")

    responses = []
    for location, response in reader.items(query, "responses", f"reply.{client_name}.query.json", default=[]):
        kind = reader.field(response, "kind", str, location)
        # An error entry for a kind has no jsonFile
        json_file = reader.field(response, "jsonFile", str, location, default=None)
        responses.append(ReplyResponse(kind=kind, json_file=json_file))

    return IndexReply(cmake_version=version, responses=tuple(responses))


# =============================================================================
# Codemodel reply
# =============================================================================


@dataclass(frozen=True)
class CodemodelTarget:
    """Reference from the codemodel to a target reply."""

    name: str
    directory_index: int
    json_file: str


@dataclass(frozen=True)
class CodemodelReply:
    """Parsed codemodel-v2 reply (first configuration only).

    Attributes:
        source_root: Top-level source directory of the project (paths.source)
        directories: Source directory of each CMake directory, relative to source_root
        targets: Targets of the first configuration
    """

    source_root: str
    directories: Tuple[str, ...]
    targets: Tuple[CodemodelTarget, ...]

    def target_directory(self, target: CodemodelTarget) -> str:
        """Return the absolute source directory in which a target is defined."""
        if not 0 <= target.directory_index < len(self.directories):
            raise ReplyFormatError(f"codemodel: target '{target.name}' has invalid directoryIndex {target.directory_index}")
        return os.path.join(self.source_root, self.directories[target.directory_index])


def parse_codemodel_reply(data: Any, document: str = "codemodel reply") -> CodemodelReply:
    """Parse a codemodel reply, keeping only the first configuration."""
    reader = _ReplyReader(document)
    paths = reader.field(data, "paths", dict, "")
    source_root = reader.field(paths, "source", str, "paths")

    configurations = reader.field(data, "configurations", list, "")
    if not configurations:
        raise ReplyFormatError(f"{document}: 'configurations' is empty")
    configuration = configurations[0]

    directories = tuple(reader.field(directory, "source", str, location) for location, directory in reader.items(configuration, "directories", "configurations[0]"))

    targets = []
    for location, target in reader.items(configuration, "targets", "configurations[0]", default=[]):
        targets.append(
            CodemodelTarget(
                name=reader.field(target, "name", str, location, default=""),
                directory_index=reader.field(target, "directoryIndex", int, location),
                json_file=reader.field(target, "jsonFile", str, location),
            )
        )

    return CodemodelReply(source_root=source_root, directories=directories, targets=tuple(targets))


# =============================================================================
# Target reply
# =============================================================================


@dataclass(frozen=True)
class CompileGroupInclude:
    """Include directory of a compile group."""

    path: str
    is_system: bool


@dataclass(frozen=True)
class CompileGroup:
    """Sources of a target sharing the same compiler flags, language and standard."""

    language: str
    standard: Optional[str]
    fragments: Tuple[str, ...]
    includes: Tuple[CompileGroupInclude, ...]
    defines: Tuple[str, ...]
    source_indexes: Tuple[int, ...]


@dataclass(frozen=True)
class TargetReply:
    """Parsed target-*.json reply.

    Attributes:
        compile_groups: Compile groups (empty for targets that compile nothing)
        sources: Source paths, relative to the project source root or absolute
    """

    compile_groups: Tuple[CompileGroup, ...]
    sources: Tuple[str, ...]


def parse_target_reply(data: Any, document: str = "target reply") -> TargetReply:
    """Parse a target reply."""
    reader = _ReplyReader(document)
    sources = tuple(reader.field(source, "path", str, location) for location, source in reader.items(data, "sources", "", default=[]))

    groups = []
    for location, group in reader.items(data, "compileGroups", "", default=[]):
        standard_info = reader.field(group, "languageStandard", dict, location, default=None)
        standard = reader.field(standard_info, "standard", str, f"{location}.languageStandard") if standard_info is not None else None

        fragments = tuple(reader.field(f, "fragment", str, where) for where, f in reader.items(group, "compileCommandFragments", location, default=[]))
        includes = tuple(
            CompileGroupInclude(path=reader.field(inc, "path", str, where), is_system=reader.field(inc, "isSystem", bool, where, default=False))
            for where, inc in reader.items(group, "includes", location, default=[])
        )
        defines = tuple(reader.field(d, "define", str, where) for where, d in reader.items(group, "defines", location, default=[]))

        source_indexes = []
        for where, index in reader.items(group, "sourceIndexes", location):
            if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(sources):
                raise ReplyFormatError(f"{document}: '{where}' is not a valid source index")
            source_indexes.append(index)

        groups.append(
            CompileGroup(
                language=reader.field(group, "language", str, location),
                standard=standard,
                fragments=fragments,
                includes=includes,
                defines=defines,
                source_indexes=tuple(source_indexes),
            )
        )

    return TargetReply(compile_groups=tuple(groups), sources=sources)


# =============================================================================
# Toolchains reply
# =============================================================================


@dataclass(frozen=True)
class ToolchainEntry:
    """Compiler description for one language from the toolchains reply."""

    language: str
    compiler_id: str
    compiler_path: str
    compiler_version: str
    implicit_include_directories: Tuple[str, ...]


def parse_toolchains_reply(data: Any, document: str = "toolchains reply") -> Tuple[ToolchainEntry, ...]:
    """Parse a toolchains-v1 reply.

    Compilers CMake could not identify have no id or path; they are kept with
    empty strings so callers can skip them by compiler id.
    """
    reader = _ReplyReader(document)
    entries = []
    for location, toolchain in reader.items(data, "toolchains", ""):
        compiler: Dict[str, Any] = reader.field(toolchain, "compiler", dict, location)
        where = f"{location}.compiler"
        implicit = reader.field(compiler, "implicit", dict, where, default={})
        include_dirs = reader.field(implicit, "includeDirectories", list, f"{where}.implicit", default=[])
        for i, include_dir in enumerate(include_dirs):
            if not isinstance(include_dir, str):
                raise ReplyFormatError(f"{document}: '{where}.implicit.includeDirectories[{i}]' is not a string")

        entries.append(
            ToolchainEntry(
                language=reader.field(toolchain, "language", str, location),
                compiler_id=reader.field(compiler, "id", str, where, default=""),
                compiler_path=reader.field(compiler, "path", str, where, default=""),
                compiler_version=reader.field(compiler, "version", str, where, default=""),
                implicit_include_directories=tuple(include_dirs),
            )
        )

    logger.debug("Parsed %d toolchains from %s", len(entries), document)
    return tuple(entries)
