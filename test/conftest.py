#!/usr/bin/env python3
#****************************************************************************************************************************************************
#* BSD 3-Clause License
#*
#* Copyright (c) 2025, Mana Battery
#* All rights reserved.
#*
#* Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
#*
#* 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
#* 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
#*    documentation and/or other materials provided with the distribution.
#* 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
#*    software without specific prior written permission.
#*
#* THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
#* THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
#* CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
#* PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
#* LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
#* EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
"""Pytest configuration and shared fixtures for code analysis tests.

Fixtures:
- temp_dir: isolated temporary directory
- msvc_install: fake Visual Studio install tree with cl.exe, EspXEngine.dll and rulesets
- cmake_reply: factory writing a CMake file API reply set into a build directory
"""

import os
import sys
import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from lib.constants import CMAKE_API_CLIENT_NAME  # noqa: E402

MSVC_TOOLSET = "14.38.33130"


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests.

    Scope: function (default)
    Use for: File I/O operations that need isolation
    """
    tmpdir = tempfile.mkdtemp(prefix="codeanalysis_test_")
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


def make_msvc_install(root: str, host: str = "Hostx64", target: str = "x64", with_rulesets: bool = True) -> Dict[str, str]:
    """Create a fake Visual Studio install tree and return its interesting paths."""
    vs_root = os.path.join(root, "VS")
    bin_dir = os.path.join(vs_root, "VC", "Tools", "MSVC", MSVC_TOOLSET, "bin", host)
    target_dir = os.path.join(bin_dir, target)
    os.makedirs(target_dir, exist_ok=True)

    compiler = os.path.join(target_dir, "cl.exe")
    Path(compiler).touch()

    host_arch = host[len("Host") :].lower()
    plugin_dir = os.path.join(bin_dir, host_arch)
    os.makedirs(plugin_dir, exist_ok=True)
    plugin = os.path.join(plugin_dir, "EspXEngine.dll")
    Path(plugin).touch()

    ruleset_dir = os.path.join(vs_root, "Team Tools", "Static Analysis Tools", "Rule Sets")
    if with_rulesets:
        os.makedirs(ruleset_dir, exist_ok=True)
        Path(ruleset_dir, "NativeRecommendedRules.ruleset").write_text("<RuleSet/>")

    return {
        "vs_root": vs_root,
        "compiler": compiler,
        "plugin": plugin,
        "ruleset_dir": ruleset_dir,
        "vcvarsall": os.path.join(vs_root, "VC", "Auxiliary", "Build", "vcvarsall.bat"),
    }


@pytest.fixture
def msvc_install(temp_dir: str) -> Dict[str, str]:
    """Fake x64-hosted, x64-targeting MSVC install.

    Scope: function
    Dependencies: temp_dir
    """
    return make_msvc_install(temp_dir)


def toolchain_entry(language: str, compiler: str, compiler_id: str = "MSVC", includes: Optional[List[str]] = None) -> Dict[str, Any]:
    """Create one entry of the toolchains reply."""
    entry: Dict[str, Any] = {
        "language": language,
        "compiler": {"id": compiler_id, "path": compiler, "version": "19.38.33130.0", "implicit": {}},
    }
    if includes is not None:
        entry["compiler"]["implicit"]["includeDirectories"] = includes
    return entry


def compile_group(language: str, sources: List[int], fragments: str = "/DWIN32 /W4", includes: Optional[List[Dict[str, Any]]] = None, defines: Optional[List[str]] = None) -> Dict[str, Any]:
    """Create one compile group of a target reply."""
    return {
        "language": language,
        "languageStandard": {"backtraces": [1], "standard": "17"},
        "compileCommandFragments": [{"fragment": fragment} for fragment in fragments.split("|")],
        "includes": includes or [],
        "defines": [{"define": define} for define in (defines or [])],
        "sourceIndexes": sources,
    }


class CMakeReplyWriter:
    """Writes a CMake file API reply set (index, codemodel, targets, toolchains)."""

    def __init__(self, build_dir: str, source_root: str):
        self.build_dir = build_dir
        self.source_root = source_root
        self.reply_dir = os.path.join(build_dir, ".cmake", "api", "v1", "reply")
        os.makedirs(self.reply_dir, exist_ok=True)

    def write_json(self, name: str, data: Any) -> str:
        path = os.path.join(self.reply_dir, name)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        return path

    def write_codemodel(self, targets: List[Dict[str, Any]]) -> str:
        """Write codemodel and target replies.

        Each target is {"name", "dir" (source-relative), "sources": [...], "groups": [...]}.
        """
        directories: List[str] = []
        target_refs = []
        for i, target in enumerate(targets):
            if target["dir"] not in directories:
                directories.append(target["dir"])
            json_file = f"target-{target['name']}-Debug-{i:04d}.json"
            self.write_json(json_file, {"name": target["name"], "sources": [{"path": s} for s in target["sources"]], "compileGroups": target["groups"]})
            target_refs.append({"name": target["name"], "directoryIndex": directories.index(target["dir"]), "jsonFile": json_file})

        codemodel = {
            "kind": "codemodel",
            "version": {"major": 2, "minor": 6},
            "paths": {"source": self.source_root, "build": self.build_dir},
            "configurations": [{"name": "Debug", "directories": [{"source": d} for d in directories], "targets": target_refs}],
        }
        return self.write_json("codemodel-v2-0123456789abcdef.json", codemodel)

    def write_toolchains(self, toolchains: List[Dict[str, Any]]) -> str:
        return self.write_json("toolchains-v1-fedcba9876543210.json", {"kind": "toolchains", "version": {"major": 1, "minor": 0}, "toolchains": toolchains})

    def write_index(self, version: str = "3.28.1", name: str = "index-2024-01-01T00-00-00-0000.json", codemodel: bool = True, toolchains: bool = True) -> str:
        responses = []
        if codemodel:
            responses.append({"kind": "codemodel", "version": {"major": 2, "minor": 6}, "jsonFile": "codemodel-v2-0123456789abcdef.json"})
        if toolchains:
            responses.append({"kind": "toolchains", "version": {"major": 1, "minor": 0}, "jsonFile": "toolchains-v1-fedcba9876543210.json"})
        index = {
            "cmake": {"version": {"string": version, "major": 3}},
            "reply": {CMAKE_API_CLIENT_NAME: {"query.json": {"requests": [], "responses": responses}}},
        }
        return self.write_json(name, index)


@pytest.fixture
def cmake_reply(temp_dir: str) -> Callable[..., CMakeReplyWriter]:
    """Factory creating a configured build directory with a reply writer.

    Scope: function
    Dependencies: temp_dir
    """

    def factory(source_root: Optional[str] = None) -> CMakeReplyWriter:
        build_dir = os.path.join(temp_dir, "build")
        os.makedirs(build_dir, exist_ok=True)
        Path(build_dir, "CMakeCache.txt").write_text("# configured\n")
        return CMakeReplyWriter(build_dir, source_root or os.path.join(temp_dir, "src"))

    return factory
