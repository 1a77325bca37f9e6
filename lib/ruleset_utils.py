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
"""Locate the analysis ruleset requested by the user."""

import os
import logging
from typing import Optional

from lib.constants import RulesetNotFoundError
from lib.file_utils import resolve_input_path

logger = logging.getLogger(__name__)


def find_ruleset(ruleset: Optional[str], ruleset_directory: Optional[str], workspace: str) -> Optional[str]:
    """Find a ruleset, searching the workspace first and then the official ruleset directory.

    Args:
        ruleset: Ruleset path or name given by the user (None/empty for all checks)
        ruleset_directory: Official ruleset directory shipped with Visual Studio (None if not found)
        workspace: Root that relative ruleset paths are resolved against

    Returns:
        Path to the ruleset, or None if no ruleset was requested

    Raises:
        RulesetNotFoundError: If a ruleset was requested but exists neither locally nor officially
    """
    if not ruleset:
        return None

    local_ruleset = resolve_input_path(ruleset, workspace, "ruleset")
    if local_ruleset and os.path.isfile(local_ruleset):
        logger.info("Found local ruleset: %s", local_ruleset)
        return local_ruleset

    if ruleset_directory is not None:
        official_ruleset = os.path.join(ruleset_directory, ruleset)
        if os.path.isfile(official_ruleset):
            logger.info("Found official ruleset: %s", official_ruleset)
            return official_ruleset
    else:
        logger.warning("Unable to find official rulesets shipped with Visual Studio.")

    raise RulesetNotFoundError(f"Unable to find local or official ruleset specified: {ruleset}")
