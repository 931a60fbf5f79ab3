"""Entry point for the relocatable tool builder.

This module provides the main() function and command-line interface. With
no arguments it builds and installs the configured tool version using the
built-in defaults.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger
from rich.console import Console

from relobuild import constants
from relobuild.config import BuildConfig, dump_config, load_config
from relobuild.errors import RelobuildError
from relobuild.logging_utils import debug_log_path, setup_logging
from relobuild.orchestrator import BuildReport, Orchestrator
from relobuild.recipe import write_recipe


def parse_arguments() -> argparse.ArgumentParser:
    """Parse command-line arguments.

    Returns
    -------
    argparse.ArgumentParser
        Argument parser.

    """
    parser = argparse.ArgumentParser(
        prog="relobuild",
        description="Build a tool from source in a disposable container and install it as a relocatable tree.",
        epilog=(
            "Do not run two builds against the same destination or container name at once: "
            "each build wipes its destination before rebuilding."
        ),
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="TOML file with build settings ([relobuild] or [tool.relobuild] table)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode with verbose logging",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Print the effective configuration as TOML and exit",
    )
    parser.add_argument(
        "--render-recipe",
        type=Path,
        metavar="PATH",
        help="Write the build recipe script to PATH and exit",
    )
    return parser


def print_summary(config: BuildConfig, report: BuildReport, console: Console | None = None) -> None:
    """Print the summary of a successful build."""
    console = console or Console()
    console.print(f"\n[bold green]{config.tool} {config.version} installed successfully![/bold green]")
    console.print("\n[cyan]Installed files:[/cyan]")
    console.print(f"  Binary: {report.binary_path or config.binary_path}")
    if report.launcher_path:
        console.print(f"  Launcher: {report.launcher_path}")
    if report.warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for warning in report.warnings:
            console.print(f"  {warning}")


def main(argv: list[str] | None = None) -> int:
    """Run the relocatable tool builder.

    Returns
    -------
    int
        Process exit status

    """
    parser = parse_arguments()
    args = parser.parse_args(argv)

    setup_logging(args.debug or constants.DEBUG_MODE)

    try:
        config = load_config(args.config)

        if args.show_config:
            print(dump_config(config), end="")
            return constants.EXIT_SUCCESS

        if args.render_recipe:
            write_recipe(config, args.render_recipe)
            logger.success(f"Recipe written to {args.render_recipe}")
            return constants.EXIT_SUCCESS

        orchestrator = Orchestrator(config)
        try:
            report = orchestrator.run()
        except RelobuildError as e:
            logger.error(f"Build failed at step '{orchestrator.report.failed_step}': {e}")
            logger.info(f"See {debug_log_path()} for details.")
            return constants.EXIT_FAILURE

        print_summary(config, report)
    except RelobuildError as e:
        logger.error(f"Configuration error: {e}")
        return constants.EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user.")
        return constants.EXIT_SUCCESS

    return constants.EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
