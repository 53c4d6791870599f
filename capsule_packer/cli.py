"""Command line interface for capsule-packer."""

import argparse
import dataclasses
import logging
import pathlib
import sys

from capsule_packer.builder import BuildReport, build_capsules
from capsule_packer.config import DEFAULT_DESCRIPTOR, CapsuleConfig, load_descriptor
from capsule_packer.project import Project
from capsule_packer.resolver import LocalRepository, resolve_dependency_artifacts


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the capsule-packer logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("capsule_packer")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _apply_overrides(config: CapsuleConfig, ns: argparse.Namespace) -> CapsuleConfig:
    """Apply command line options on top of the descriptor's ``[capsule]`` table.

    :param config: Configuration loaded from the descriptor.
    :param ns: Parsed arguments.
    :returns: Updated configuration.
    """

    changes: dict[str, object] = {}
    if ns.app_class is not None:
        changes["app_class"] = ns.app_class
    if ns.capsule_version is not None:
        changes["capsule_version"] = ns.capsule_version
    if ns.output is not None:
        changes["output"] = ns.output
    if ns.types is not None:
        changes["types"] = ns.types
    if ns.caplets is not None:
        changes["caplets"] = ns.caplets
    if ns.exec_config is not None:
        changes["exec_plugin_config"] = ns.exec_config
    if ns.chmod is True:
        changes["chmod"] = True
    if ns.trampoline is True:
        changes["trampoline"] = True
    if len(changes) == 0:
        return config
    return dataclasses.replace(config, **changes)


def main(argv: list[str] | None = None) -> int:
    """Run the capsule-packer CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="capsule-packer",
        description="Package a compiled project into empty, thin and fat capsule archives.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_build = subparsers.add_parser(
        "build",
        help="Build capsule archives.",
    )
    p_build.add_argument(
        "-p",
        "--project",
        type=pathlib.Path,
        default=pathlib.Path(DEFAULT_DESCRIPTOR),
        help=f"Path to the project descriptor (default: {DEFAULT_DESCRIPTOR}).",
    )
    p_build.add_argument(
        "--repository",
        type=pathlib.Path,
        default=pathlib.Path.home() / ".m2" / "repository",
        help="Local repository holding the capsule runtime and dependency jars.",
    )
    p_build.add_argument(
        "--app-class",
        type=str,
        default=None,
        help="Application entry-point class (overrides the descriptor).",
    )
    p_build.add_argument(
        "--capsule-version",
        type=str,
        default=None,
        help="Capsule runtime version. Defaults to the latest release in the repository.",
    )
    p_build.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        default=None,
        help="Output directory (defaults to the project's build directory).",
    )
    p_build.add_argument(
        "--types",
        type=str,
        default=None,
        help="Capsule types to build, e.g. 'thin,fat'. Builds empty, thin and fat by default.",
    )
    p_build.add_argument(
        "--caplets",
        type=str,
        default=None,
        help="Space separated caplet class names to bundle.",
    )
    p_build.add_argument(
        "--exec-config",
        type=str,
        default=None,
        help="Exec execution id to take defaults from, or 'root' for the root exec configuration.",
    )
    p_build.add_argument(
        "--chmod",
        action="store_true",
        help="Also write a self-executing .x copy of every capsule.",
    )
    p_build.add_argument(
        "--trampoline",
        action="store_true",
        help="Also write a self-executing trampoline .tx copy of every capsule.",
    )
    p_build.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging. Pass multiple times for more detail.",
    )
    p_build.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )

    ns = parser.parse_args(argv)
    if ns.command == "build":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
        project: Project
        config: CapsuleConfig
        project, config = load_descriptor(ns.project)
        config = _apply_overrides(config, ns)

        repository: LocalRepository = LocalRepository(ns.repository)
        logger.info(f"capsule-packer: project={project.coordinates()}")
        logger.info(f"capsule-packer: repository={repository.root}")
        project = dataclasses.replace(
            project,
            artifacts=resolve_dependency_artifacts(project.dependencies, repository),
        )

        report: BuildReport = build_capsules(
            project=project,
            config=config,
            versions=repository,
            artifacts=repository,
            logger=logger,
        )
        for path in report.archives + report.executables:
            print(path)
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")
