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
"""Run cl.exe analysis for assembled AnalyzeCommands and manage the results directory."""

import os
import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from lib.analysis_types import AnalyzeCommand
from lib.color_utils import print_info
from lib.constants import DEFAULT_MAX_WORKERS, SARIF_EXTENSION, ConfigurationError, NoAnalyzableSourcesError

logger = logging.getLogger(__name__)


@dataclass
class AnalysisFailure:
    """A source file whose analysis failed.

    Attributes:
        source: Source file that was analyzed
        reason: Exit code or error message
    """

    source: str
    reason: str


@dataclass
class AnalysisSummary:
    """Outcome of running all analysis commands."""

    succeeded: List[str] = field(default_factory=list)
    failed: List[AnalysisFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


def prepare_results_dir(results_dir: str, clean_sarif: bool = False) -> str:
    """Create the results directory and optionally remove stale SARIF files.

    Args:
        results_dir: Directory SARIF files are written to
        clean_sarif: If True, delete existing *.sarif files in results_dir

    Returns:
        The results directory

    Raises:
        ConfigurationError: If the directory cannot be created
    """
    try:
        os.makedirs(results_dir, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Failed to create results directory '{results_dir}': {e}") from e

    if clean_sarif:
        removed = 0
        for entry in os.scandir(results_dir):
            if entry.is_file() and os.path.splitext(entry.name)[1].lower() == SARIF_EXTENSION:
                os.unlink(entry.path)
                removed += 1
        logger.info("Removed %d stale SARIF file(s) from %s", removed, results_dir)

    return results_dir


def run_analyze_command(command: AnalyzeCommand, build_dir: str) -> Optional[AnalysisFailure]:
    """Run cl.exe for a single source file.

    Args:
        command: Command to run
        build_dir: Working directory for cl.exe

    Returns:
        None on success, AnalysisFailure if cl.exe could not be run or failed
    """
    logger.info("Running analysis on: %s", command.source)
    try:
        result = subprocess.run([command.compiler_path, *command.args], cwd=build_dir, env=dict(command.env), capture_output=True, text=True, errors="replace")
    except (OSError, ValueError) as e:
        return AnalysisFailure(command.source, str(e))

    if result.stdout:
        logger.info("%s", result.stdout.rstrip())
    if result.returncode != 0:
        if result.stderr:
            logger.debug("%s", result.stderr.rstrip())
        return AnalysisFailure(command.source, f"exit code {result.returncode}")
    return None


def run_analysis(commands: Sequence[AnalyzeCommand], build_dir: str, max_workers: int = DEFAULT_MAX_WORKERS) -> AnalysisSummary:
    """Run analysis for every command, continuing past failures of individual files.

    Each command is self-contained, so commands are run by a bounded pool of workers;
    max_workers=1 runs them one at a time in order.

    Args:
        commands: Commands created by create_analysis_commands
        build_dir: Working directory for cl.exe
        max_workers: Maximum number of concurrent cl.exe processes

    Returns:
        AnalysisSummary with succeeded and failed sources

    Raises:
        NoAnalyzableSourcesError: If there are no commands to run
    """
    if not commands:
        raise NoAnalyzableSourcesError("No C/C++ files were found in the project that could be analyzed.")

    summary = AnalysisSummary()
    workers = max(1, max_workers)
    print_info(f"Analyzing {len(commands)} source file(s) using {workers} worker(s)...")

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(run_analyze_command, command, build_dir): command for command in commands}
        for future in as_completed(futures):
            command = futures[future]
            try:
                failure = future.result()
            except Exception as e:  # pylint: disable=broad-except
                failure = AnalysisFailure(command.source, f"{type(e).__name__}: {e}")
            if failure is None:
                summary.succeeded.append(command.source)
                continue

            summary.failed.append(failure)
            logger.debug("Environment: %s", dict(command.env))
            logger.warning("Compilation failed for %s with error: %s", failure.source, failure.reason)

    return summary
