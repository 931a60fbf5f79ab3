"""Relocatable tool builder.

This package builds a third-party command-line tool from source inside a
disposable Docker container and installs it, together with a relocatable
launcher, into a directory tree that can be moved or mounted anywhere.
"""

from __future__ import annotations

__version__ = "1.0.0"
