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
"""Run MSVC Code Analysis on every C/C++ source file of a CMake project.

PURPOSE:
    Uses the CMake file API of an already configured build directory to find the
    compiler, flags, includes and defines of each source file, then runs cl.exe
    with /analyze on each of them, writing one SARIF file per source.

WHAT IT DOES:
    - Queries codemodel and toolchains replies from the CMake file API
    - Finds the MSVC toolset, analyzer plugin and rulesets from the cl.exe location
    - Optionally loads implicit includes/libs from the VS Command Prompt
    - Builds one /analyze command line per source file
    - Runs cl.exe for each source, continuing past failures of single files

Requirements:
    - Python 3.9+
    - CMake >= 3.20.5 on PATH
    - MSVC (Visual Studio 2017 or later) used for C and/or C++
    - packaging, colorama

Usage:
    msvcCodeAnalysis.py --build-dir build --results-dir results [--ruleset NativeRecommendedRules.ruleset]

Exit Codes:
    0: Success
    1: Invalid arguments or configuration
    2: Analysis setup failed
    3: External tool failed
"""
__version__ = "1.0.0"

import sys
import signal
import logging
import argparse
import traceback
from typing import Any, List, Optional

from lib.analysis_runner import prepare_results_dir, run_analysis
from lib.analysis_types import CompilerCommandOptions, IncludePath
from lib.analyze_commands import create_analysis_commands
from lib.color_utils import Colors, print_error, print_success, print_warning, should_use_color
from lib.constants import DEFAULT_MAX_WORKERS, EXIT_KEYBOARD_INTERRUPT, EXIT_RUNTIME_ERROR, EXIT_SUCCESS, CodeAnalysisError
from lib.file_utils import get_workspace_root, resolve_input_path, resolve_input_paths
from lib.package_verification import require_package

__all__ = ["build_parser", "create_options", "main"]


def signal_handler(signum: int, frame: Any) -> None:
    """Handle interrupt signals gracefully."""
    print_warning("\nInterrupted by user. Exiting...", prefix=False)
    sys.exit(EXIT_KEYBOARD_INTERRUPT)


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        description="Run MSVC Code Analysis on a CMake project.",
        epilog=f"Version {__version__}\n\nExamples:\n"
        "  %(prog)s --build-dir build --results-dir results\n"
        "  %(prog)s --build-dir build --results-dir results --ruleset NativeRecommendedRules.ruleset\n"
        '  %(prog)s --build-dir build --results-dir results --ignored-target-paths "third_party;tests"\n',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--build-dir", required=True, help="CMake build directory, already configured with CMake")
    parser.add_argument("--results-dir", required=True, help="Directory the SARIF files are written to")
    parser.add_argument("--ruleset", help="Ruleset file, relative to the workspace or a name under the Visual Studio 'Rule Sets' directory")
    parser.add_argument(
        "--ignore-system-headers",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Use /external options to ignore warnings in CMake SYSTEM headers (default: on)",
    )
    parser.add_argument(
        "--load-implicit-compiler-env",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Load implicit includes/libs from the VS Command Prompt (default: on)",
    )
    parser.add_argument("--ignored-target-paths", default="", metavar="PATHS", help="';' separated paths; CMake targets defined under them are not analyzed")
    parser.add_argument("--ignored-include-paths", default="", metavar="PATHS", help="';' separated include paths excluded from analysis (needs --ignore-system-headers)")
    parser.add_argument("--additional-args", default="", metavar="ARGS", help="Additional arguments added to every cl.exe command line")
    parser.add_argument("--clean-sarif", action=argparse.BooleanOptionalAction, default=True, help="Delete existing SARIF files in the results directory (default: on)")
    parser.add_argument("--jobs", "-j", type=int, default=DEFAULT_MAX_WORKERS, help=f"Number of concurrent cl.exe processes (default: {DEFAULT_MAX_WORKERS})")
    parser.add_argument("--workspace", help="Root for relative paths (default: $GITHUB_WORKSPACE or the current directory)")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging and full error traces")
    return parser


def create_options(args: argparse.Namespace, workspace: str) -> CompilerCommandOptions:
    """Resolve command line values into CompilerCommandOptions.

    Raises:
        ConfigurationError: If the option combination is invalid
    """
    ignored_include_paths = [IncludePath(path, True) for path in resolve_input_paths(args.ignored_include_paths, workspace, "ignored include paths")]
    return CompilerCommandOptions(
        ignore_system_headers=args.ignore_system_headers,
        load_implicit_compiler_env=args.load_implicit_compiler_env,
        ignored_target_paths=tuple(resolve_input_paths(args.ignored_target_paths, workspace, "ignored target paths")),
        ignored_include_paths=tuple(ignored_include_paths),
        additional_args=args.additional_args,
        ruleset=args.ruleset,
    )


def run(args: argparse.Namespace) -> int:
    """Create and run all analysis commands.

    Returns:
        Exit code
    """
    workspace = args.workspace or get_workspace_root()
    build_dir = resolve_input_path(args.build_dir, workspace, "build directory", required=True)
    results_dir = resolve_input_path(args.results_dir, workspace, "results directory", required=True)
    assert build_dir is not None and results_dir is not None

    options = create_options(args, workspace)
    prepare_results_dir(results_dir, args.clean_sarif)

    analyze_commands = create_analysis_commands(build_dir, results_dir, options, workspace)
    summary = run_analysis(analyze_commands, build_dir, args.jobs)

    print(f"\n{Colors.BRIGHT}{Colors.CYAN}=== Analysis Summary ==={Colors.RESET}")
    print(f"Analyzed files: {Colors.BRIGHT}{summary.total}{Colors.RESET}")
    if summary.failed:
        print_warning(f"{len(summary.failed)} file(s) failed analysis:", prefix=False)
        for failure in summary.failed:
            print(f"  {Colors.DIM}{failure.source}{Colors.RESET} - {failure.reason}")
    else:
        print_success(f"SARIF results written to {results_dir}", prefix=False)

    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the script.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    signal.signal(signal.SIGINT, signal_handler)

    args = build_parser().parse_args(argv)

    if not should_use_color(no_color=args.no_color):
        Colors.disable()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(asctime)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    require_package("packaging", "CMake version checks")

    try:
        return run(args)
    except KeyboardInterrupt:
        print_warning("\nInterrupted by user.", prefix=False)
        return EXIT_KEYBOARD_INTERRUPT
    except CodeAnalysisError as e:
        print_error(str(e))
        if args.verbose:
            traceback.print_exc(file=sys.stderr)
        return e.exit_code
    except Exception as e:  # pylint: disable=broad-except
        print_error(f"Unexpected failure: {e}")
        if args.verbose:
            traceback.print_exc(file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
