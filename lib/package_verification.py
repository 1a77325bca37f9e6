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
"""Runtime dependency checks.

Minimum versions are based on Ubuntu 24.04 LTS or actual code requirements,
whichever is higher.
"""

import sys
import logging
from typing import Tuple, Optional, Dict
from importlib.metadata import version, PackageNotFoundError

from packaging.version import parse

from lib.color_utils import print_error
from lib.constants import EXIT_RUNTIME_ERROR

logger = logging.getLogger(__name__)

PACKAGE_REQUIREMENTS: Dict[str, str] = {
    "packaging": "24.0",  # CMake version comparison
    "colorama": "0.4.6",  # colored output
}


def check_package_version(package_name: str, min_version: Optional[str] = None, raise_on_error: bool = True) -> Tuple[bool, bool, Optional[str]]:
    """Check that a distribution is installed in at least the required version.

    Args:
        package_name: Distribution name on the package index (e.g. 'packaging')
        min_version: Minimum version, defaults to the PACKAGE_REQUIREMENTS entry
        raise_on_error: Raise instead of returning a failed status

    Returns:
        (is_installed, meets_version, installed_version)

    Raises:
        ImportError: If raise_on_error is set and the package is missing or too old
        ValueError: If no minimum version is known for the package
    """
    required = min_version or PACKAGE_REQUIREMENTS.get(package_name)
    if required is None:
        raise ValueError(f"No version requirement specified for {package_name}")

    try:
        installed = version(package_name)
    except PackageNotFoundError as exc:
        if raise_on_error:
            raise ImportError(f"{package_name} is not installed. Install with: pip install '{package_name}>={required}'") from exc
        return False, False, None

    meets_version = parse(installed) >= parse(required)
    logger.debug("%s %s installed (need >=%s)", package_name, installed, required)
    if not meets_version and raise_on_error:
        raise ImportError(f"{package_name} {installed} is too old, >={required} is required. Upgrade with: pip install --upgrade '{package_name}>={required}'")
    return True, meets_version, installed


def require_package(package_name: str, context: str = "this tool") -> None:
    """Exit with EXIT_RUNTIME_ERROR and a readable message if a package is missing or too old.

    Args:
        package_name: Distribution name on the package index
        context: What needs the package, shown in the message
    """
    try:
        check_package_version(package_name)
    except (ImportError, ValueError) as e:
        print_error(f"{package_name} is required for {context}: {e}")
        sys.exit(EXIT_RUNTIME_ERROR)
