"""Capsule configuration and the ``capsule.toml`` project descriptor.

The descriptor has three tables:

- ``[project]``: identity, ``build_dir``, ``final_name``, ``dependencies`` and
  ``repositories``.
- ``[exec]``: an optional external launch configuration (``main_class``,
  ``arguments``, ``system_properties``) plus ``[exec.executions.<id>]``.
- ``[capsule]``: the capsule options (see :class:`~CapsuleConfig`).

Relative paths are resolved against the descriptor's directory.
"""

from dataclasses import dataclass
import enum
import pathlib
import re
import tomllib
from typing import Any

from capsule_packer.errors import ConfigurationError
from capsule_packer.project import (
    Dependency,
    ExecConfig,
    ExecPlugin,
    Project,
    PropertyPair,
    Repository,
)

DEFAULT_DESCRIPTOR: str = "capsule.toml"

_TYPES_SPLIT_RE: re.Pattern[str] = re.compile(r"[,\s]+")


class Variant(enum.Enum):
    """Capsule flavours, in build order."""

    EMPTY = "empty"
    THIN = "thin"
    FAT = "fat"


@dataclass(frozen=True, slots=True)
class Mode:
    """A named manifest section selectable at launch.

    :ivar name: Section name; unnamed modes are dropped.
    :ivar properties: System properties for the mode, or ``None``.
    :ivar manifest: Manifest attributes for the mode, or ``None``.
    """

    name: str | None
    properties: tuple[PropertyPair, ...] | None = None
    manifest: tuple[PropertyPair, ...] | None = None


@dataclass(frozen=True, slots=True)
class FileSet:
    """Extra files copied into every capsule.

    :ivar directory: Source directory, or ``None`` to skip the set.
    :ivar output_directory: Destination prefix inside the archive.
    :ivar includes: Literal file names under ``directory``.
    """

    directory: pathlib.Path | None
    output_directory: str | None = None
    includes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CapsuleConfig:
    """Capsule options.

    :ivar app_class: Application entry-point class.
    :ivar capsule_version: Runtime version; ``None`` picks the latest release.
    :ivar output: Output directory; ``None`` uses the build directory.
    :ivar suffix_empty: Name suffix of the empty capsule.
    :ivar suffix_thin: Name suffix of the thin capsule.
    :ivar suffix_fat: Name suffix of the fat capsule.
    :ivar build_exec: Legacy spelling of ``chmod``.
    :ivar chmod: Write a plain ``.x`` executable next to each capsule.
    :ivar trampoline: Write a trampoline ``.tx`` executable next to each capsule.
    :ivar types: Variant filter (comma/space separated); ``None`` builds all.
    :ivar caplets: Space separated caplet class name fragments.
    :ivar exec_plugin_config: Exec execution id, or ``root``.
    :ivar properties: System properties; ``None`` falls back to the exec configuration.
    :ivar manifest: Manifest attributes applied last.
    :ivar modes: Mode sections.
    :ivar file_sets: Extra file sets.
    """

    app_class: str | None = None
    capsule_version: str | None = None
    output: pathlib.Path | None = None
    suffix_empty: str = "-capsule-empty"
    suffix_thin: str = "-capsule-thin"
    suffix_fat: str = "-capsule-fat"
    build_exec: bool = False
    chmod: bool = False
    trampoline: bool = False
    types: str | None = None
    caplets: str | None = None
    exec_plugin_config: str | None = None
    properties: tuple[PropertyPair, ...] | None = None
    manifest: tuple[PropertyPair, ...] = ()
    modes: tuple[Mode, ...] = ()
    file_sets: tuple[FileSet, ...] = ()

    def suffix(self, variant: Variant) -> str:
        if variant is Variant.EMPTY:
            return self.suffix_empty
        if variant is Variant.THIN:
            return self.suffix_thin
        return self.suffix_fat

    def wants_plain_exec(self) -> bool:
        return self.chmod is True or self.build_exec is True

    def caplet_fragments(self) -> list[str]:
        if self.caplets is None:
            return []
        return [c for c in self.caplets.split(" ") if len(c) > 0]


def parse_types(types: str | None) -> list[Variant]:
    """Parse the variant filter.

    Unknown tokens are ignored; when no token names a variant, every variant
    is selected.

    :param types: Comma and/or whitespace separated variant names.
    :returns: Selected variants in build order.
    """

    if types is None:
        return list(Variant)

    tokens: set[str] = {t.strip().lower() for t in _TYPES_SPLIT_RE.split(types) if len(t.strip()) > 0}
    selected: list[Variant] = [v for v in Variant if v.value in tokens]
    if len(selected) == 0:
        return list(Variant)
    return selected


def parse_flag(value: object) -> bool:
    """Interpret a boolean option given as a bool or as ``true``/``1``.

    :param value: Raw option value.
    :returns: Parsed flag.
    """

    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"true", "1"}


def parse_pairs(raw: Any, *, what: str) -> tuple[PropertyPair, ...]:
    """Parse key/value pairs from a TOML table or an array of ``{key, value}`` tables.

    :param raw: Raw TOML value.
    :param what: Option name for error messages.
    :returns: Pairs in declaration order.
    :raises ConfigurationError: If the value has the wrong shape.
    """

    if isinstance(raw, dict):
        return tuple(PropertyPair(key=str(k), value=_opt_str(v)) for k, v in raw.items())
    if isinstance(raw, list):
        pairs: list[PropertyPair] = []
        for item in raw:
            if not isinstance(item, dict):
                raise ConfigurationError(f"{what}: expected tables with key/value, got {item!r}")
            pairs.append(PropertyPair(key=_opt_str(item.get("key")), value=_opt_str(item.get("value"))))
        return tuple(pairs)
    raise ConfigurationError(f"{what}: expected a table or an array of tables, got {raw!r}")


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value is True else "false"
    return str(value)


def _resolve_path(base_dir: pathlib.Path, value: str | None) -> pathlib.Path | None:
    if value is None or len(value) == 0:
        return None
    p: pathlib.Path = pathlib.Path(value).expanduser()
    if p.is_absolute() is False:
        p = base_dir / p
    return p


def _require_str(table: dict[str, Any], key: str, *, where: str) -> str:
    value: Any = table.get(key)
    if not isinstance(value, str) or len(value) == 0:
        raise ConfigurationError(f"{where}: missing required string {key!r}")
    return value


def parse_capsule_config(table: dict[str, Any], *, base_dir: pathlib.Path) -> CapsuleConfig:
    """Build a :class:`~CapsuleConfig` from the ``[capsule]`` table.

    :param table: Raw table.
    :param base_dir: Directory relative paths are resolved against.
    :returns: Parsed configuration.
    :raises ConfigurationError: If a value has the wrong shape.
    """

    modes: list[Mode] = []
    for raw_mode in table.get("modes", []):
        if not isinstance(raw_mode, dict):
            raise ConfigurationError(f"capsule.modes: expected tables, got {raw_mode!r}")
        props_raw: Any = raw_mode.get("properties")
        manifest_raw: Any = raw_mode.get("manifest")
        modes.append(
            Mode(
                name=_opt_str(raw_mode.get("name")),
                properties=None if props_raw is None else parse_pairs(props_raw, what="mode properties"),
                manifest=None if manifest_raw is None else parse_pairs(manifest_raw, what="mode manifest"),
            )
        )

    file_sets: list[FileSet] = []
    for raw_fs in table.get("file_sets", []):
        if not isinstance(raw_fs, dict):
            raise ConfigurationError(f"capsule.file_sets: expected tables, got {raw_fs!r}")
        file_sets.append(
            FileSet(
                directory=_resolve_path(base_dir, _opt_str(raw_fs.get("directory"))),
                output_directory=_opt_str(raw_fs.get("output_directory")),
                includes=tuple(str(i) for i in raw_fs.get("includes", [])),
            )
        )

    props_raw2: Any = table.get("properties")
    defaults: CapsuleConfig = CapsuleConfig()
    return CapsuleConfig(
        app_class=_opt_str(table.get("app_class")),
        capsule_version=_opt_str(table.get("version")),
        output=_resolve_path(base_dir, _opt_str(table.get("output"))),
        suffix_empty=str(table.get("custom_descriptor_empty", defaults.suffix_empty)),
        suffix_thin=str(table.get("custom_descriptor_thin", defaults.suffix_thin)),
        suffix_fat=str(table.get("custom_descriptor_fat", defaults.suffix_fat)),
        build_exec=parse_flag(table.get("build_exec")),
        chmod=parse_flag(table.get("chmod")),
        trampoline=parse_flag(table.get("trampoline")),
        types=_opt_str(table.get("types")),
        caplets=_opt_str(table.get("caplets")),
        exec_plugin_config=_opt_str(table.get("exec_plugin_config")),
        properties=None if props_raw2 is None else parse_pairs(props_raw2, what="capsule.properties"),
        manifest=parse_pairs(table.get("manifest", {}), what="capsule.manifest"),
        modes=tuple(modes),
        file_sets=tuple(file_sets),
    )


def _parse_exec_config(table: dict[str, Any]) -> ExecConfig:
    props_raw: Any = table.get("system_properties", [])
    return ExecConfig(
        main_class=_opt_str(table.get("main_class")),
        arguments=tuple(str(a) for a in table.get("arguments", [])),
        system_properties=parse_pairs(props_raw, what="exec.system_properties"),
    )


def parse_project(
    table: dict[str, Any],
    *,
    exec_table: dict[str, Any] | None,
    base_dir: pathlib.Path,
) -> Project:
    """Build a :class:`~capsule_packer.project.Project` from the ``[project]`` table.

    :param table: Raw ``[project]`` table.
    :param exec_table: Raw ``[exec]`` table, if present.
    :param base_dir: Directory relative paths are resolved against.
    :returns: Parsed project (dependency artifacts are not resolved yet).
    :raises ConfigurationError: If required values are missing.
    """

    group_id: str = _require_str(table, "group_id", where="project")
    artifact_id: str = _require_str(table, "artifact_id", where="project")
    version: str = _require_str(table, "version", where="project")
    final_name: str = str(table.get("final_name", f"{artifact_id}-{version}"))
    build_dir: pathlib.Path | None = _resolve_path(base_dir, _opt_str(table.get("build_dir", "target")))
    if build_dir is None:
        raise ConfigurationError("project: build_dir must not be empty")

    dependencies: list[Dependency] = []
    for raw_dep in table.get("dependencies", []):
        if not isinstance(raw_dep, dict):
            raise ConfigurationError(f"project.dependencies: expected tables, got {raw_dep!r}")
        dependencies.append(
            Dependency(
                group_id=_require_str(raw_dep, "group_id", where="project.dependencies"),
                artifact_id=_require_str(raw_dep, "artifact_id", where="project.dependencies"),
                version=_require_str(raw_dep, "version", where="project.dependencies"),
                scope=str(raw_dep.get("scope", "compile")),
                exclusions=tuple(str(e) for e in raw_dep.get("exclusions", [])),
                file=_resolve_path(base_dir, _opt_str(raw_dep.get("file"))),
            )
        )

    repositories: list[Repository] = []
    for raw_repo in table.get("repositories", []):
        if not isinstance(raw_repo, dict):
            raise ConfigurationError(f"project.repositories: expected tables, got {raw_repo!r}")
        repositories.append(
            Repository(
                id=_require_str(raw_repo, "id", where="project.repositories"),
                url=_require_str(raw_repo, "url", where="project.repositories"),
            )
        )

    exec_plugin: ExecPlugin | None = None
    if exec_table is not None:
        executions: dict[str, ExecConfig] = {}
        for exec_id, raw_exec in exec_table.get("executions", {}).items():
            executions[str(exec_id)] = _parse_exec_config(raw_exec)
        root_table: dict[str, Any] = {k: v for k, v in exec_table.items() if k != "executions"}
        exec_plugin = ExecPlugin(
            configuration=_parse_exec_config(root_table) if len(root_table) > 0 else None,
            executions=executions,
        )

    return Project(
        group_id=group_id,
        artifact_id=artifact_id,
        version=version,
        build_dir=build_dir,
        final_name=final_name,
        dependencies=tuple(dependencies),
        repositories=tuple(repositories),
        exec_plugin=exec_plugin,
    )


def load_descriptor(path: pathlib.Path) -> tuple[Project, CapsuleConfig]:
    """Load a ``capsule.toml`` descriptor.

    :param path: Descriptor path.
    :returns: The project and its capsule configuration.
    :raises ConfigurationError: If the file is missing or malformed.
    """

    if path.is_file() is False:
        raise ConfigurationError(f"Project descriptor does not exist: {path}")

    try:
        with open(path, "rb") as f:
            data: dict[str, Any] = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid project descriptor {path}: {e}") from e

    base_dir: pathlib.Path = path.resolve().parent
    project_table: Any = data.get("project")
    if not isinstance(project_table, dict):
        raise ConfigurationError(f"{path}: missing [project] table")
    exec_table: Any = data.get("exec")
    if exec_table is not None and not isinstance(exec_table, dict):
        raise ConfigurationError(f"{path}: [exec] must be a table")

    project: Project = parse_project(project_table, exec_table=exec_table, base_dir=base_dir)
    config: CapsuleConfig = parse_capsule_config(data.get("capsule", {}), base_dir=base_dir)
    return project, config
