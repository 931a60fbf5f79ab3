"""Constants used throughout the relocatable tool builder."""

from __future__ import annotations

import os

# Global debug flag - can be set via environment variable or command line
DEBUG_MODE = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes", "on")

# Log level for the console sink when not in debug mode
LOG_LEVEL_ENV = "RELOBUILD_LOG_LEVEL"
DEBUG_LOG_FILE_NAME = "relobuild_debug.log"

# Build defaults
DEFAULT_TOOL = "git"
# 2.45.3 is the latest Git release that still builds against glibc 2.17
DEFAULT_VERSION = "2.45.3"
DEFAULT_DESTINATION = "/share/Public/toolchain/git"
DEFAULT_IMAGE = "sdhuang32/c7-systemd"
DEFAULT_MIRROR_URL = "https://mirrors.edge.kernel.org/pub/software/scm/{tool}/{tool}-{version}.tar.gz"
DEFAULT_PACKAGE_MANAGER = ("yum", "install", "-y")
DEFAULT_BUILD_PACKAGES = (
    "gcc",
    "wget",
    "make",
    "curl-devel",
    "expat-devel",
    "gettext-devel",
    "openssl-devel",
    "perl-devel",
    "zlib-devel",
)
DEFAULT_WORK_DIR = "/root"

# Repository override shipped next to the config file, replacing the deprecated CentOS mirror list
REPO_OVERRIDE_FILE_NAME = "CentOS-Base.repo"
REPO_OVERRIDE_TARGET = "/etc/yum.repos.d/CentOS-Base.repo"

# Recipe file names
RECIPE_FILE_NAME = "build-recipe.sh"
SOURCE_ARCHIVE_NAME = "sources.tar.gz"
SOURCE_DIR_NAME = "sources"

# Container keep-alive command
KEEPALIVE_COMMAND = ("tail", "-f", "/dev/null")

# Version query flag used to verify an installation
VERSION_FLAG = "--version"

# Environment overrides for the most commonly changed settings
ENV_VERSION = "RELOBUILD_VERSION"
ENV_DESTINATION = "RELOBUILD_DESTINATION"
ENV_IMAGE = "RELOBUILD_IMAGE"

# Config file table name in pyproject-style TOML files
CONFIG_TABLE = "relobuild"

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
