"""Build recipe executed inside the disposable container.

The recipe is described here as an ordered list of steps and rendered to a
self-contained bash script, so the build container needs nothing but bash
and its own package manager. The script takes exactly two positional
arguments, the version and the install path, and performs these steps in
order:

1. install build dependencies through the container's package manager
2. change into the work directory
3. remove the stale archive, source tree and (when overwriting) install path
4. download the source archive from the mirror
5. extract the archive
6. configure with the install path as prefix
7. compile
8. install
9. verify that the installed binary answers ``--version``

Extraction, compile and install failures are downgraded to warnings when the
configuration tolerates build failures, because some targets report benign
errors there. A missing final binary is always fatal.
"""

from __future__ import annotations

import shlex
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from relobuild.config import BuildConfig
from relobuild.constants import SOURCE_ARCHIVE_NAME, SOURCE_DIR_NAME, VERSION_FLAG

RECIPE_ARG_COUNT = 2
USAGE = "Usage: $0 <version> <install_path>"


class StepPolicy(Enum):
    """How the recipe reacts when a step fails."""

    FATAL = "fatal"
    WARN = "warn"
    IGNORE = "ignore"


class RecipeStep(NamedTuple):
    """A single shell command in the recipe."""

    command: str
    policy: StepPolicy
    failure: str = ""
    banner: str | None = None

    def render(self) -> str:
        """Render the step as a bash line with its failure handling."""
        if self.policy is StepPolicy.FATAL:
            return f'{self.command} || {{ echo "ERROR: {self.failure}"; exit 1; }}'
        if self.policy is StepPolicy.WARN:
            return f'{self.command} || echo "WARNING: {self.failure} (ignored)"'
        return self.command


def build_steps(config: BuildConfig) -> list[RecipeStep]:
    """Build the ordered recipe steps for a configuration.

    Parameters
    ----------
    config : BuildConfig
        Build configuration providing tool, mirror, packages and policies

    Returns
    -------
    list[RecipeStep]
        Steps in execution order

    """
    tool = config.tool
    soft = StepPolicy.WARN if config.tolerate_build_failures else StepPolicy.FATAL
    install_deps = shlex.join([*config.package_manager, *config.build_packages])
    # Version is substituted by the shell, so keep the placeholder unquoted inside double quotes
    url = config.mirror_url.format(tool=tool, version="${VERSION}")
    binary = f'"$INSTALL_PATH/bin/{tool}"'

    steps = [
        RecipeStep(install_deps, StepPolicy.FATAL, "Failed to install dependencies", "Install required packages"),
        RecipeStep(
            f"cd {shlex.quote(config.work_dir)}",
            StepPolicy.FATAL,
            f"Unable to change to {config.work_dir} directory",
        ),
        RecipeStep(f"rm -f {SOURCE_ARCHIVE_NAME}", StepPolicy.IGNORE, banner="Cleanup"),
        RecipeStep(f"rm -rf {SOURCE_DIR_NAME}", StepPolicy.IGNORE),
    ]
    if config.overwrite_existing:
        steps.append(RecipeStep('rm -rf "$INSTALL_PATH"', StepPolicy.IGNORE))

    steps += [
        RecipeStep(
            f'wget "{url}" -O {SOURCE_ARCHIVE_NAME}',
            StepPolicy.FATAL,
            f"Failed to download {tool} version $VERSION",
            f"Fetch {tool} tarball",
        ),
        RecipeStep(
            f"mkdir -p {SOURCE_DIR_NAME} && tar zxf {SOURCE_ARCHIVE_NAME} -C {SOURCE_DIR_NAME} --strip-components=1",
            soft,
            f"Failed to extract {SOURCE_ARCHIVE_NAME}",
            "Uncompress sources",
        ),
        RecipeStep(
            f"cd {SOURCE_DIR_NAME}",
            StepPolicy.FATAL,
            f"Failed to navigate to {tool} source directory",
            f"Build {tool}",
        ),
        RecipeStep('./configure --prefix="$INSTALL_PATH"', StepPolicy.FATAL, "Configure failed"),
        RecipeStep("make all", soft, "Make failed"),
        RecipeStep("make install", soft, "Make install failed"),
        RecipeStep(
            f"{binary} {VERSION_FLAG}",
            StepPolicy.FATAL,
            f"{tool} installation failed in destination path",
            "Verify installation destination path",
        ),
    ]
    return steps


def render_recipe(config: BuildConfig) -> str:
    """Render the recipe as a bash script.

    Parameters
    ----------
    config : BuildConfig
        Build configuration

    Returns
    -------
    str
        Script text taking ``<version> <install_path>`` as arguments

    """
    lines = [
        "#!/bin/bash",
        f"# Download, compile and install {config.tool} from source into a given prefix.",
        "#",
        f"# {USAGE.replace('$0', 'build-recipe.sh')}",
        "",
        f'if [ "$#" -ne {RECIPE_ARG_COUNT} ]; then',
        f'    echo "{USAGE}"',
        "    exit 1",
        "fi",
        "",
        'VERSION="$1"',
        'INSTALL_PATH="$2"',
        "",
        "log() {",
        '    echo -e "\\n###########################################"',
        '    echo "# $1"',
        '    echo "###########################################"',
        "}",
    ]
    for step in build_steps(config):
        if step.banner:
            lines += ["", f'log "{step.banner}"']
        lines.append(step.render())

    lines += ["", f'echo "{config.tool} installed successfully at $INSTALL_PATH"', ""]
    return "\n".join(lines)


def write_recipe(config: BuildConfig, path: Path) -> Path:
    """Write the rendered recipe to a file and make it executable.

    Parameters
    ----------
    config : BuildConfig
        Build configuration
    path : Path
        Destination file

    Returns
    -------
    Path
        The written file

    """
    path.write_text(render_recipe(config), encoding="utf-8")
    path.chmod(0o755)
    return path
