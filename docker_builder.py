#!/usr/bin/env python3
"""Relocatable tool builder - Entry Point.

Builds the configured tool version inside a disposable Docker container and
installs it, with its relocatable launcher, into the configured destination.
The functionality lives in the relobuild package.
"""

from __future__ import annotations

import sys

from relobuild.main import main

if __name__ == "__main__":
    sys.exit(main())
