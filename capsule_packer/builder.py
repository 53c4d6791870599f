"""Capsule builder.

This module assembles the three capsule flavours:

- ``empty``: only the capsule runtime; the manifest names the application's
  coordinates and the repositories, and everything is fetched at launch.
- ``thin``: the compiled classes plus the runtime; the manifest lists the
  dependencies and repositories, which are resolved at launch.
- ``fat``: the project jar, every dependency jar and the launcher class.

Every capsule is written in the same order: manifest (always the first
entry), payload, runtime classes, caplets, file sets. Optionally a
self-executing copy is written next to it.
"""

from dataclasses import dataclass
import logging
import pathlib
import time
from typing import Iterable

from capsule_packer.archive import MANIFEST_NAME, ArchiveWriter
from capsule_packer.config import CapsuleConfig, Mode, Variant, parse_types
from capsule_packer.diagnostics import Diagnostic, Diagnostics
from capsule_packer.errors import BuildError, ConfigurationError
from capsule_packer.executable import (
    EXEC_PREFIX,
    EXEC_SUFFIX,
    EXEC_TRAMPOLINE_PREFIX,
    EXEC_TRAMPOLINE_SUFFIX,
    make_executable,
)
from capsule_packer.manifest import Attributes, Manifest, ManifestError
from capsule_packer.project import (
    ArtifactState,
    DependencyArtifact,
    ExecConfig,
    Project,
    PropertyPair,
    render_arguments,
    render_dependencies,
    render_properties,
    render_repositories,
)
from capsule_packer.resolver import (
    ArtifactResolver,
    RuntimeArtifact,
    VersionRangeResolver,
    resolve_dependency_artifacts,
    resolve_runtime_version,
)
from capsule_packer.sources import (
    RUNTIME_MAIN_CLASS,
    Entry,
    archive_name,
    iter_compiled_entries,
    iter_file_set_entries,
    iter_runtime_entries,
    locate_caplets,
)


@dataclass(frozen=True, slots=True)
class BuildReport:
    """Outcome of a capsule build.

    :ivar archives: Capsule archives written, in build order.
    :ivar executables: Self-executing copies written, in build order.
    :ivar diagnostics: Recoverable conditions met during the build.
    :ivar runtime_version: Capsule runtime version used.
    """

    archives: tuple[pathlib.Path, ...]
    executables: tuple[pathlib.Path, ...]
    diagnostics: tuple[Diagnostic, ...]
    runtime_version: str


@dataclass(slots=True)
class _BuildContext:
    """State shared by every variant of one build invocation."""

    project: Project
    config: CapsuleConfig
    app_class: str
    exec_config: ExecConfig | None
    caplets: dict[str, pathlib.Path]
    output_dir: pathlib.Path
    runtime: RuntimeArtifact
    artifacts: ArtifactResolver | None
    diagnostics: Diagnostics
    logger: logging.Logger


def resolve_app_class(config: CapsuleConfig, exec_config: ExecConfig | None) -> str:
    """Determine the application entry-point class.

    :param config: Capsule configuration.
    :param exec_config: Selected exec configuration, if any.
    :returns: Application class name.
    :raises ConfigurationError: If no application class can be found.
    """

    if config.app_class is not None and len(config.app_class) > 0:
        return config.app_class
    if exec_config is not None and exec_config.main_class is not None and len(exec_config.main_class) > 0:
        return exec_config.main_class
    raise ConfigurationError("app_class not set (and no main_class in the selected exec configuration)")


def resolve_output_dir(project: Project, config: CapsuleConfig, logger: logging.Logger) -> pathlib.Path:
    """Determine (and create) the output directory.

    Writing capsules into the compiled-output directory would feed them back
    into later builds, so that location is replaced by the build directory.

    :param project: Project.
    :param config: Capsule configuration.
    :param logger: Logger for debug output.
    :returns: Output directory.
    """

    output: pathlib.Path = config.output if config.output is not None else project.build_dir
    if output.resolve() == project.classes_dir.resolve():
        output = project.build_dir
        logger.debug("capsule-packer: output was an illegal path, using the build directory instead")
    output.mkdir(parents=True, exist_ok=True)
    return output


def output_name(project: Project, config: CapsuleConfig, variant: Variant) -> str:
    return project.final_name + config.suffix(variant)


def compose_manifest(
    *,
    project: Project,
    config: CapsuleConfig,
    variant: Variant,
    app_class: str,
    exec_config: ExecConfig | None,
    caplets: list[str],
    diagnostics: Diagnostics,
) -> Manifest:
    """Compute a capsule's manifest.

    :param project: Project.
    :param config: Capsule configuration.
    :param variant: Capsule variant.
    :param app_class: Application entry-point class.
    :param exec_config: Selected exec configuration, if any.
    :param caplets: Caplet fragments that were found.
    :param diagnostics: Collector for unnamed modes.
    :returns: The manifest.
    :raises ConfigurationError: If a configured attribute name or value is invalid.
    """

    try:
        return _compose_manifest(
            project=project,
            config=config,
            variant=variant,
            app_class=app_class,
            exec_config=exec_config,
            caplets=caplets,
            diagnostics=diagnostics,
        )
    except ManifestError as e:
        raise ConfigurationError(str(e)) from e


def _compose_manifest(
    *,
    project: Project,
    config: CapsuleConfig,
    variant: Variant,
    app_class: str,
    exec_config: ExecConfig | None,
    caplets: list[str],
    diagnostics: Diagnostics,
) -> Manifest:
    manifest: Manifest = Manifest()
    main: Attributes = manifest.main
    main["Manifest-Version"] = "1.0"
    main["Main-Class"] = RUNTIME_MAIN_CLASS
    main["Application-Class"] = app_class
    main["Application-Name"] = output_name(project, config, variant)

    properties: str | None = _system_properties(config, exec_config)
    if properties is not None and len(properties) > 0:
        main["System-Properties"] = properties

    if exec_config is not None:
        jvm_args: str = render_arguments(exec_config.arguments)
        if len(jvm_args) > 0:
            main["JVM-Args"] = jvm_args

    extra: dict[str, str] = {}
    if variant is Variant.EMPTY:
        extra["Application"] = project.coordinates()
        extra["Repositories"] = render_repositories(project.repositories)
    elif variant is Variant.THIN:
        extra["Dependencies"] = render_dependencies(project.dependencies)
        extra["Repositories"] = render_repositories(project.repositories)
    for name, value in extra.items():
        if len(value) > 0:
            main[name] = value

    if len(caplets) > 0:
        main["Caplets"] = " ".join(caplets)

    # User entries are applied last and win over everything computed above.
    _apply_pairs(main, config.manifest)

    for mode in config.modes:
        section: Attributes | None = _mode_section(mode, diagnostics)
        if section is not None and mode.name is not None:
            manifest.add_section(mode.name, section)

    return manifest


def _system_properties(config: CapsuleConfig, exec_config: ExecConfig | None) -> str | None:
    if config.properties is not None:
        return render_properties(config.properties)
    if exec_config is not None:
        return render_properties(exec_config.system_properties)
    return None


def _apply_pairs(attrs: Attributes, pairs: Iterable[PropertyPair]) -> None:
    for p in pairs:
        if p.key is None or p.value is None:
            continue
        attrs[p.key] = p.value


def _mode_section(mode: Mode, diagnostics: Diagnostics) -> Attributes | None:
    """Compute the manifest section of a mode.

    :param mode: Mode definition.
    :param diagnostics: Collector for unnamed modes.
    :returns: The section, or ``None`` if the mode contributes nothing.
    """

    if mode.name is None or len(mode.name) == 0:
        diagnostics.warn("mode-without-name", "Mode defined without name, ignoring.")
        return None

    attrs: Attributes = Attributes()
    if mode.manifest is not None:
        _apply_pairs(attrs, mode.manifest)
    if mode.properties is not None:
        props: str = render_properties(mode.properties)
        if len(props) > 0:
            attrs["System-Properties"] = props
    if len(attrs) == 0:
        return None
    return attrs


def build_capsules(
    *,
    project: Project,
    config: CapsuleConfig,
    versions: VersionRangeResolver,
    artifacts: ArtifactResolver,
    logger: logging.Logger | None = None,
) -> BuildReport:
    """Build the configured capsule variants.

    :param project: Project to package.
    :param config: Capsule configuration.
    :param versions: Resolver for the capsule runtime's versions.
    :param artifacts: Resolver for the capsule runtime and dependency jars.
    :param logger: Optional logger for build progress output.
    :returns: Build report.
    :raises ConfigurationError: If no application class can be determined.
    :raises ResolutionError: If the capsule runtime cannot be resolved.
    :raises BuildError: If writing a capsule fails.
    """

    if logger is None:
        logger = logging.getLogger("capsule_packer")

    exec_config: ExecConfig | None = None
    if project.exec_plugin is not None:
        exec_config = project.exec_plugin.select(config.exec_plugin_config)

    app_class: str = resolve_app_class(config, exec_config)

    t_total0: float = time.perf_counter()
    diagnostics: Diagnostics = Diagnostics()
    archives: list[pathlib.Path] = []
    executables: list[pathlib.Path] = []
    try:
        caplets: dict[str, pathlib.Path] = {}
        fragments: list[str] = config.caplet_fragments()
        if len(fragments) > 0:
            try:
                caplets = locate_caplets(project.classes_dir, fragments, diagnostics)
            except OSError as e:
                raise BuildError(f"Failed to locate caplets: {e}") from e

        variants: list[Variant] = parse_types(config.types)
        if logger.isEnabledFor(logging.DEBUG) is True:
            logger.debug("capsule-packer: types=" + "".join(f"[{v.value}]" for v in variants))

        runtime_version: str = resolve_runtime_version(
            configured=config.capsule_version,
            versions=versions,
        )
        output_dir: pathlib.Path = resolve_output_dir(project, config, logger)
        logger.info(f"capsule-packer: using capsule version {runtime_version}")
        if logger.isEnabledFor(logging.DEBUG) is True:
            logger.debug(f"capsule-packer: output_dir={output_dir}")

        ctx: _BuildContext = _BuildContext(
            project=project,
            config=config,
            app_class=app_class,
            exec_config=exec_config,
            caplets=caplets,
            output_dir=output_dir,
            runtime=RuntimeArtifact(artifacts=artifacts, version=runtime_version, logger=logger),
            artifacts=artifacts,
            diagnostics=diagnostics,
            logger=logger,
        )

        for variant in variants:
            try:
                archive: pathlib.Path = _build_variant(ctx, variant)
                archives.append(archive)
                executables.extend(_create_exec_copies(ctx, archive))
            except OSError as e:
                raise BuildError(f"Failed to build {variant.value} capsule: {e}") from e
    finally:
        diagnostics.emit(logger)

    t_total1: float = time.perf_counter()
    logger.info(f"capsule-packer: done in {t_total1 - t_total0:.2f}s")
    return BuildReport(
        archives=tuple(archives),
        executables=tuple(executables),
        diagnostics=tuple(diagnostics.items()),
        runtime_version=runtime_version,
    )


def _build_variant(ctx: _BuildContext, variant: Variant) -> pathlib.Path:
    """Write one capsule.

    :param ctx: Build context.
    :param variant: Capsule variant.
    :returns: Path of the written capsule.
    """

    t0: float = time.perf_counter()
    manifest: Manifest = compose_manifest(
        project=ctx.project,
        config=ctx.config,
        variant=variant,
        app_class=ctx.app_class,
        exec_config=ctx.exec_config,
        caplets=list(ctx.caplets.keys()),
        diagnostics=ctx.diagnostics,
    )

    # Resolve everything the capsule cannot do without before the file exists.
    runtime_jar: pathlib.Path = ctx.runtime.path()
    needs_classes: bool = variant is Variant.THIN or (
        variant is Variant.FAT and ctx.project.primary_archive.is_file() is False
    )
    if needs_classes is True:
        _require_classes_dir(ctx)

    path: pathlib.Path = ctx.output_dir / f"{output_name(ctx.project, ctx.config, variant)}.jar"
    try:
        with ArchiveWriter(path, logger=ctx.logger) as writer:
            if ctx.logger.isEnabledFor(logging.DEBUG) is True:
                for line in manifest.describe():
                    ctx.logger.debug(f"capsule-packer: {line}")
            writer.write_entry(MANIFEST_NAME, manifest.render())

            if variant is Variant.THIN:
                _write_entries(writer, iter_compiled_entries(ctx.project.classes_dir))
            elif variant is Variant.FAT:
                _write_fat_payload(ctx, writer)

            _write_entries(
                writer,
                iter_runtime_entries(runtime_jar, main_class_only=variant is Variant.FAT),
            )

            for caplet_path in ctx.caplets.values():
                writer.write_file(archive_name(caplet_path, ctx.project.classes_dir), caplet_path)

            _write_entries(writer, iter_file_set_entries(ctx.config.file_sets, ctx.diagnostics))
    except BaseException:
        path.unlink(missing_ok=True)
        raise

    t1: float = time.perf_counter()
    ctx.logger.info(f"capsule-packer: created {path.name} ({len(writer.names)} entries) in {t1 - t0:.2f}s")
    return path


def _require_classes_dir(ctx: _BuildContext) -> None:
    classes_dir: pathlib.Path = ctx.project.classes_dir
    if classes_dir.is_dir() is False:
        raise BuildError(f"Compiled output directory does not exist: {classes_dir}")


def _write_entries(writer: ArchiveWriter, entries: Iterable[Entry]) -> None:
    for name, data in entries:
        if data is None:
            writer.write_directory(name)
        else:
            writer.write_entry(name, data)


def _write_fat_payload(ctx: _BuildContext, writer: ArchiveWriter) -> None:
    """Write the project jar (or its classes) and the dependency jars.

    :param ctx: Build context.
    :param writer: Open fat capsule.
    """

    primary: pathlib.Path = ctx.project.primary_archive
    if primary.is_file() is True:
        writer.write_file(primary.name, primary)
    else:
        ctx.diagnostics.warn(
            "primary-archive-missing",
            f"Couldn't add {primary.name} to the fat capsule, adding the project classes directly instead.",
            variant=Variant.FAT.value,
        )
        _write_entries(writer, iter_compiled_entries(ctx.project.classes_dir))

    dep_artifacts: tuple[DependencyArtifact, ...] = ctx.project.artifacts
    if len(dep_artifacts) == 0 and len(ctx.project.dependencies) > 0:
        dep_artifacts = resolve_dependency_artifacts(ctx.project.dependencies, ctx.artifacts)

    for art in dep_artifacts:
        coords: str = art.dependency.coordinates()
        if art.state is ArtifactState.RESOLVED and art.file is not None:
            writer.write_file(art.file.name, art.file)
        elif art.state is ArtifactState.SCOPE_EXCLUDED:
            if ctx.logger.isEnabledFor(logging.DEBUG) is True:
                ctx.logger.debug(
                    f"capsule-packer: dependency {coords} has scope {art.dependency.scope}, not embedded"
                )
        elif art.state is ArtifactState.MISSING_FILE:
            ctx.diagnostics.warn(
                "dependency-file-missing",
                f"Dependency [{coords}] file {art.file} not found, not added to the fat capsule.",
                variant=Variant.FAT.value,
            )
        else:
            message: str = f"Dependency [{coords}] could not be resolved, not added to the fat capsule."
            if art.reason is not None:
                message += f" ({art.reason})"
            ctx.diagnostics.warn(
                "dependency-unresolved",
                message,
                variant=Variant.FAT.value,
            )


def _create_exec_copies(ctx: _BuildContext, archive: pathlib.Path) -> list[pathlib.Path]:
    out: list[pathlib.Path] = []
    if ctx.config.wants_plain_exec() is True:
        out.append(make_executable(archive, prefix=EXEC_PREFIX, suffix=EXEC_SUFFIX, logger=ctx.logger))
    if ctx.config.trampoline is True:
        out.append(
            make_executable(
                archive,
                prefix=EXEC_TRAMPOLINE_PREFIX,
                suffix=EXEC_TRAMPOLINE_SUFFIX,
                logger=ctx.logger,
            )
        )
    return out
