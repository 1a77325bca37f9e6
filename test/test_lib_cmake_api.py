#!/usr/bin/env python3
"""Tests for lib/cmake_api.py"""

import os
import json
import subprocess
from typing import Any, Callable
from unittest.mock import Mock, patch

import pytest

from lib.cmake_api import (
    create_api_query,
    find_reply_index_file,
    get_api_reply_index,
    is_version_supported,
    load_cmake_api_replies,
    run_cmake_configure,
)
from lib.constants import (
    CMAKE_API_CLIENT_NAME,
    CMAKE_API_DIR,
    EXIT_TOOL_FAILED,
    ConfigurationError,
    MissingReplyError,
    ReplyFormatError,
    ToolInvocationError,
    ToolNotFoundError,
    UnsupportedVersionError,
)
from lib.tool_detection import ToolInfo


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["cmake"], returncode=returncode, stdout=stdout, stderr=stderr)


class TestCreateApiQuery:
    """Tests for create_api_query function."""

    def test_writes_codemodel_and_toolchains_request(self, temp_dir: str) -> None:
        """Test the query requests codemodel v2 and toolchains v1."""
        api_dir = os.path.join(temp_dir, CMAKE_API_DIR)

        query_file = create_api_query(api_dir)

        assert query_file == os.path.join(api_dir, "query", CMAKE_API_CLIENT_NAME, "query.json")
        with open(query_file, encoding="utf-8") as f:
            data = json.load(f)
        assert data == {"requests": [{"kind": "codemodel", "version": 2}, {"kind": "toolchains", "version": 1}]}

    def test_overwrites_existing_query(self, temp_dir: str) -> None:
        """Test an existing query file is replaced."""
        api_dir = os.path.join(temp_dir, CMAKE_API_DIR)
        query_file = create_api_query(api_dir)
        with open(query_file, "w", encoding="utf-8") as f:
            f.write("stale")

        create_api_query(api_dir)

        with open(query_file, encoding="utf-8") as f:
            assert json.load(f)["requests"][0]["kind"] == "codemodel"

    def test_unwritable_location_raises(self, temp_dir: str) -> None:
        """Test a file in place of the query directory is reported as a configuration error."""
        blocker = os.path.join(temp_dir, "api")
        with open(blocker, "w", encoding="utf-8") as f:
            f.write("not a directory")

        with pytest.raises(ConfigurationError, match="query.json"):
            create_api_query(blocker)


class TestFindReplyIndexFile:
    """Tests for find_reply_index_file function."""

    def test_selects_lexicographically_greatest(self, temp_dir: str) -> None:
        """Test the newest index is chosen regardless of creation order."""
        for name in ["index-2024-03-01T10-00-00-0000.json", "index-2024-12-31T23-59-59-0000.json", "index-2024-01-15T08-30-00-0000.json"]:
            with open(os.path.join(temp_dir, name), "w", encoding="utf-8") as f:
                f.write("{}")

        result = find_reply_index_file(temp_dir)

        assert result == os.path.join(temp_dir, "index-2024-12-31T23-59-59-0000.json")

    def test_ignores_other_reply_files(self, temp_dir: str) -> None:
        """Test codemodel/target files are never mistaken for the index."""
        for name in ["index-2024-01-01T00-00-00-0000.json", "toolchains-v1-ffff.json", "target-zzz.json"]:
            with open(os.path.join(temp_dir, name), "w", encoding="utf-8") as f:
                f.write("{}")

        assert find_reply_index_file(temp_dir) == os.path.join(temp_dir, "index-2024-01-01T00-00-00-0000.json")

    def test_no_index_returns_none(self, temp_dir: str) -> None:
        """Test a reply directory without an index."""
        with open(os.path.join(temp_dir, "codemodel-v2-abc.json"), "w", encoding="utf-8") as f:
            f.write("{}")

        assert find_reply_index_file(temp_dir) is None

    def test_missing_directory_returns_none(self, temp_dir: str) -> None:
        """Test a reply directory that was never created."""
        assert find_reply_index_file(os.path.join(temp_dir, "reply")) is None


class TestIsVersionSupported:
    """Tests for is_version_supported function."""

    @pytest.mark.parametrize(
        "version,expected",
        [
            ("3.20.4", False),
            ("3.20.5", True),
            ("3.21.0", True),
            ("3.9.0", False),
            ("3.10.0", False),
            ("4.0.0", True),
            ("3.28.20240101-gabc123", True),
            ("3.29.0-rc1", True),
            ("3.20.5-rc1", False),
            ("3.20.5-rc2", False),
            ("3.21.0-rc1", True),
            ("3.20", False),
        ],
    )
    def test_compares_numerically(self, version: str, expected: bool) -> None:
        """Test versions are compared per numeric segment, not as strings."""
        assert is_version_supported(version) is expected

    def test_segment_comparison_not_lexicographic(self) -> None:
        """Test 3.9.0 < 3.10.0 which a string comparison gets wrong."""
        assert is_version_supported("3.10.0", "3.9.0")
        assert not is_version_supported("3.9.0", "3.10.0")

    def test_unparsable_version_raises(self) -> None:
        """Test a version without numeric release part."""
        with pytest.raises(UnsupportedVersionError):
            is_version_supported("unknown")


class TestGetApiReplyIndex:
    """Tests for get_api_reply_index function."""

    def test_resolves_response_paths(self, cmake_reply: Callable[..., Any]) -> None:
        """Test response files are made absolute against the reply directory."""
        writer = cmake_reply()
        writer.write_index(version="3.28.1")

        info = get_api_reply_index(os.path.join(writer.build_dir, CMAKE_API_DIR))

        assert info.version == "3.28.1"
        assert info.codemodel_response_file == os.path.join(writer.reply_dir, "codemodel-v2-0123456789abcdef.json")
        assert info.toolchains_response_file == os.path.join(writer.reply_dir, "toolchains-v1-fedcba9876543210.json")

    def test_absent_kind_is_none(self, cmake_reply: Callable[..., Any]) -> None:
        """Test a kind CMake did not answer leaves its path unset."""
        writer = cmake_reply()
        writer.write_index(toolchains=False)

        info = get_api_reply_index(os.path.join(writer.build_dir, CMAKE_API_DIR))

        assert info.codemodel_response_file is not None
        assert info.toolchains_response_file is None

    def test_uses_newest_index(self, cmake_reply: Callable[..., Any]) -> None:
        """Test an older index in the same directory is ignored."""
        writer = cmake_reply()
        writer.write_index(version="3.19.0", name="index-2023-01-01T00-00-00-0000.json")
        writer.write_index(version="3.27.0", name="index-2024-06-01T00-00-00-0000.json")

        info = get_api_reply_index(os.path.join(writer.build_dir, CMAKE_API_DIR))

        assert info.version == "3.27.0"

    def test_missing_index_raises(self, temp_dir: str) -> None:
        """Test a build tree without reply raises MissingReplyError."""
        with pytest.raises(MissingReplyError):
            get_api_reply_index(os.path.join(temp_dir, CMAKE_API_DIR))

    def test_other_client_raises(self, cmake_reply: Callable[..., Any]) -> None:
        """Test an index without this client's responses is a format error."""
        writer = cmake_reply()
        writer.write_index()

        with pytest.raises(ReplyFormatError, match="reply.client-other"):
            get_api_reply_index(os.path.join(writer.build_dir, CMAKE_API_DIR), client_name="client-other")


class TestRunCmakeConfigure:
    """Tests for run_cmake_configure function."""

    def test_cmake_not_found(self, temp_dir: str) -> None:
        """Test a missing cmake raises ToolNotFoundError."""
        with patch("lib.cmake_api.find_cmake", return_value=ToolInfo(None, None, "not in PATH (tried: cmake)")):
            with pytest.raises(ToolNotFoundError, match="not in PATH") as exc_info:
                run_cmake_configure(temp_dir)
        assert exc_info.value.exit_code == EXIT_TOOL_FAILED

    def test_runs_cmake_on_build_root(self, temp_dir: str) -> None:
        """Test cmake is invoked with the build root as its only argument."""
        with patch("lib.cmake_api.find_cmake", return_value=ToolInfo("/usr/bin/cmake", "cmake version 3.28.1")):
            with patch("lib.cmake_api.subprocess.run", return_value=_completed(stdout="-- Configuring done")) as mock_run:
                run_cmake_configure(temp_dir)

        assert mock_run.call_args[0][0] == ["/usr/bin/cmake", temp_dir]

    def test_non_zero_exit_embeds_stderr(self, temp_dir: str) -> None:
        """Test a failing cmake surfaces its own error output."""
        with patch("lib.cmake_api.find_cmake", return_value=ToolInfo("cmake", "cmake version 3.28.1")):
            with patch("lib.cmake_api.subprocess.run", return_value=_completed(1, stderr="CMake Error: bad cache")):
                with pytest.raises(ToolInvocationError, match="CMake Error: bad cache"):
                    run_cmake_configure(temp_dir)

    def test_os_error_is_tool_failure(self, temp_dir: str) -> None:
        """Test a cmake that cannot be executed."""
        with patch("lib.cmake_api.find_cmake", return_value=ToolInfo("cmake", None)):
            with patch("lib.cmake_api.subprocess.run", side_effect=OSError("permission denied")):
                with pytest.raises(ToolInvocationError, match="permission denied"):
                    run_cmake_configure(temp_dir)


class TestLoadCmakeApiReplies:
    """Tests for load_cmake_api_replies function."""

    def test_empty_build_root_raises(self, temp_dir: str) -> None:
        """Test an unconfigured build directory is rejected before running cmake."""
        with patch("lib.cmake_api.run_cmake_configure") as mock_configure:
            with pytest.raises(ConfigurationError):
                load_cmake_api_replies(temp_dir)
        mock_configure.assert_not_called()

    def test_missing_build_root_raises(self, temp_dir: str) -> None:
        """Test a build directory that does not exist."""
        with pytest.raises(ConfigurationError):
            load_cmake_api_replies(os.path.join(temp_dir, "missing"))

    def test_loads_replies(self, cmake_reply: Callable[..., Any]) -> None:
        """Test the query is written, cmake rerun and the reply loaded."""
        writer = cmake_reply()
        writer.write_index(version="3.28.1")

        with patch("lib.cmake_api.run_cmake_configure") as mock_configure:
            info = load_cmake_api_replies(writer.build_dir)

        mock_configure.assert_called_once_with(writer.build_dir)
        assert os.path.isfile(os.path.join(writer.build_dir, CMAKE_API_DIR, "query", CMAKE_API_CLIENT_NAME, "query.json"))
        assert info.version == "3.28.1"

    def test_old_cmake_raises(self, cmake_reply: Callable[..., Any]) -> None:
        """Test CMake older than 3.20.5 is rejected."""
        writer = cmake_reply()
        writer.write_index(version="3.20.4")

        with patch("lib.cmake_api.run_cmake_configure"):
            with pytest.raises(UnsupportedVersionError, match="3.20.4"):
                load_cmake_api_replies(writer.build_dir)

    def test_no_reply_generated_raises(self, temp_dir: str) -> None:
        """Test cmake producing no index reply."""
        with open(os.path.join(temp_dir, "CMakeCache.txt"), "w", encoding="utf-8") as f:
            f.write("# configured\n")

        with patch("lib.cmake_api.find_cmake", return_value=ToolInfo("cmake", None)):
            with patch("lib.cmake_api.subprocess.run", return_value=Mock(returncode=0, stdout="", stderr="")):
                with pytest.raises(MissingReplyError):
                    load_cmake_api_replies(temp_dir)


@pytest.mark.skipif(os.name == "nt", reason="uses a POSIX shell script in place of cmake")
class TestCmakeOutputEncoding:
    """Tests for cmake output that is not valid in the locale encoding."""

    def test_failure_with_undecodable_stderr(self, temp_dir: str) -> None:
        """Test a localized cmake error is reported as a tool failure."""
        script = os.path.join(temp_dir, "cmake")
        with open(script, "w", encoding="ascii") as f:
            f.write("#!/bin/sh\nprintf '\\377\\376 configuring\\n'\nprintf 'CMake Error: Fehler \\344\\n' >&2\nexit 1\n")
        os.chmod(script, 0o755)

        with patch("lib.cmake_api.find_cmake", return_value=ToolInfo(script, None)):
            with pytest.raises(ToolInvocationError, match="CMake Error: Fehler"):
                run_cmake_configure(temp_dir)
