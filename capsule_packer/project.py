"""Project inputs consumed by the capsule builder.

These types describe what the host build already knows: the project's
identity and build directory, its declared dependencies, the remote
repositories, the dependency artifacts resolved on disk and an optional
external launch ("exec") configuration. Nothing here resolves anything; it
only holds and renders the data.
"""

from dataclasses import dataclass, field
import enum
import pathlib

RUNTIME_SCOPES: frozenset[str] = frozenset({"compile", "runtime"})


@dataclass(frozen=True, slots=True)
class PropertyPair:
    """A key/value pair; either side may be missing in user configuration.

    :ivar key: Pair key.
    :ivar value: Pair value.
    """

    key: str | None
    value: str | None


@dataclass(frozen=True, slots=True)
class Dependency:
    """A declared project dependency.

    :ivar group_id: Group identifier.
    :ivar artifact_id: Artifact identifier.
    :ivar version: Resolved version.
    :ivar scope: Dependency scope (``compile``, ``runtime``, ``test``, ...).
    :ivar exclusions: Excluded ``group:artifact`` coordinates.
    :ivar file: Artifact file on disk, when the host build already has it.
    """

    group_id: str
    artifact_id: str
    version: str
    scope: str = "compile"
    exclusions: tuple[str, ...] = ()
    file: pathlib.Path | None = None

    def coordinates(self) -> str:
        """Render ``group:artifact:version`` plus a parenthesized exclusion list.

        :returns: Coordinate string, e.g. ``a:b:1.0(c:d,e:f)``.
        """

        coords: str = f"{self.group_id}:{self.artifact_id}:{self.version}"
        if len(self.exclusions) > 0:
            coords += "(" + ",".join(self.exclusions) + ")"
        return coords

    def is_runtime_scoped(self) -> bool:
        return self.scope in RUNTIME_SCOPES


@dataclass(frozen=True, slots=True)
class Repository:
    """A remote repository.

    :ivar id: Repository identifier.
    :ivar url: Repository URL.
    """

    id: str
    url: str


class ArtifactState(enum.Enum):
    """What happened when a dependency's file was looked up."""

    RESOLVED = "resolved"
    SCOPE_EXCLUDED = "scope-excluded"
    UNRESOLVED = "unresolved"
    MISSING_FILE = "missing-file"


@dataclass(frozen=True, slots=True)
class DependencyArtifact:
    """A dependency together with its file lookup outcome.

    :ivar dependency: The dependency.
    :ivar state: Lookup outcome.
    :ivar file: The file, for ``RESOLVED`` and ``MISSING_FILE``.
    :ivar reason: Optional detail for ``UNRESOLVED``.
    """

    dependency: Dependency
    state: ArtifactState
    file: pathlib.Path | None = None
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class ExecConfig:
    """External launch configuration.

    :ivar main_class: Default application entry-point class.
    :ivar arguments: Launch arguments.
    :ivar system_properties: System property pairs.
    """

    main_class: str | None = None
    arguments: tuple[str, ...] = ()
    system_properties: tuple[PropertyPair, ...] = ()


@dataclass(frozen=True, slots=True)
class ExecPlugin:
    """Exec configuration declared by the project.

    :ivar configuration: Root configuration.
    :ivar executions: Per-execution configurations keyed by execution id.
    """

    configuration: ExecConfig | None = None
    executions: dict[str, ExecConfig] = field(default_factory=dict)

    def select(self, selector: str | None) -> ExecConfig | None:
        """Pick a configuration by execution id, or ``root`` for the root one.

        :param selector: Execution id, ``root`` or ``None``.
        :returns: The selected configuration, or ``None``.
        """

        if selector is None:
            return None
        if selector == "root":
            return self.configuration
        return self.executions.get(selector)


@dataclass(frozen=True, slots=True)
class Project:
    """The project being packaged.

    :ivar group_id: Project group identifier.
    :ivar artifact_id: Project artifact identifier.
    :ivar version: Project version.
    :ivar build_dir: Build directory (holds ``classes/`` and the primary archive).
    :ivar final_name: Base name of the primary archive and of every capsule.
    :ivar dependencies: Declared dependencies, in declaration order.
    :ivar repositories: Remote repositories, in declaration order.
    :ivar artifacts: Resolved dependency artifacts (fat capsule payload).
    :ivar exec_plugin: Optional exec configuration.
    """

    group_id: str
    artifact_id: str
    version: str
    build_dir: pathlib.Path
    final_name: str
    dependencies: tuple[Dependency, ...] = ()
    repositories: tuple[Repository, ...] = ()
    artifacts: tuple[DependencyArtifact, ...] = ()
    exec_plugin: ExecPlugin | None = None

    @property
    def classes_dir(self) -> pathlib.Path:
        return self.build_dir / "classes"

    @property
    def primary_archive(self) -> pathlib.Path:
        return self.build_dir / f"{self.final_name}.jar"

    def coordinates(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


def render_dependencies(dependencies: tuple[Dependency, ...] | list[Dependency]) -> str:
    """Render the ``Dependencies`` attribute value.

    Only ``compile`` and ``runtime`` scoped dependencies are listed.

    :param dependencies: Declared dependencies.
    :returns: Space separated coordinates (may be empty).
    """

    return " ".join(d.coordinates() for d in dependencies if d.is_runtime_scoped() is True)


def render_repositories(repositories: tuple[Repository, ...] | list[Repository]) -> str:
    """Render the ``Repositories`` attribute value as ``id(url)`` items.

    :param repositories: Remote repositories.
    :returns: Space separated repositories (may be empty).
    """

    return " ".join(f"{r.id}({r.url})" for r in repositories)


def render_properties(pairs: tuple[PropertyPair, ...] | list[PropertyPair]) -> str:
    """Render a ``System-Properties`` value as ``key=value`` items.

    Pairs missing a key or a value are skipped.

    :param pairs: Property pairs.
    :returns: Space separated properties (may be empty).
    """

    items: list[str] = []
    for p in pairs:
        if p.key is None or p.value is None:
            continue
        items.append(f"{p.key}={p.value}")
    return " ".join(items)


def render_arguments(arguments: tuple[str, ...] | list[str]) -> str:
    """Render a ``JVM-Args`` value; spaces inside an argument are removed.

    :param arguments: Launch arguments.
    :returns: Space separated arguments (may be empty).
    """

    return " ".join(a.replace(" ", "") for a in arguments if a is not None)
