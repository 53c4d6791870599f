"""Artifact and version resolution.

The builder needs two things from the outside world: the list of available
versions of the capsule runtime and a local file for a
``group:artifact:version`` coordinate. Both are expressed as small protocols;
:class:`~LocalRepository` implements them on top of a local repository
directory laid out as ``group/path/artifact/version/artifact-version.jar``.
"""

import logging
import pathlib
import re
from typing import Protocol

from capsule_packer.errors import ResolutionError
from capsule_packer.project import ArtifactState, Dependency, DependencyArtifact

CAPSULE_GROUP: str = "co.paralleluniverse"
CAPSULE_ARTIFACT: str = "capsule"

_VERSION_SPLIT_RE: re.Pattern[str] = re.compile(r"[.\-_]")


class VersionRangeResolver(Protocol):
    def resolve_versions(self, group_id: str, artifact_id: str) -> list[str]:
        """Return the available versions, lowest first."""
        ...


class ArtifactResolver(Protocol):
    def resolve_artifact(self, group_id: str, artifact_id: str, version: str) -> pathlib.Path:
        """Return a local file for the coordinate, raising :class:`ResolutionError` if absent."""
        ...


def version_key(version: str) -> tuple[tuple[int, int | str], ...]:
    """Sort key for dotted versions.

    Numeric parts compare numerically and sort after textual qualifiers at the
    same position, so ``1.0-SNAPSHOT < 1.0.1 < 1.0.10``.

    :param version: Version string.
    :returns: Sort key.
    """

    key: list[tuple[int, int | str]] = []
    for part in _VERSION_SPLIT_RE.split(version):
        if part.isdigit() is True:
            key.append((1, int(part)))
        else:
            key.append((0, part.lower()))
    return tuple(key)


def select_latest_release(versions: list[str]) -> str | None:
    """Pick the highest version that is not a ``SNAPSHOT``.

    :param versions: Versions, lowest first.
    :returns: Selected version, or ``None`` if every version is a snapshot.
    """

    for v in reversed(versions):
        if "SNAPSHOT" not in v:
            return v
    return None


class LocalRepository:
    """Resolve artifacts and versions from a local repository directory."""

    def __init__(self, root: pathlib.Path) -> None:
        self.root: pathlib.Path = root

    def _artifact_dir(self, group_id: str, artifact_id: str) -> pathlib.Path:
        return self.root.joinpath(*group_id.split(".")) / artifact_id

    def resolve_versions(self, group_id: str, artifact_id: str) -> list[str]:
        """List versions present in the repository.

        :param group_id: Group identifier.
        :param artifact_id: Artifact identifier.
        :returns: Versions, lowest first.
        :raises ResolutionError: If the artifact directory does not exist.
        """

        artifact_dir: pathlib.Path = self._artifact_dir(group_id, artifact_id)
        if artifact_dir.is_dir() is False:
            raise ResolutionError(
                f"No versions of {group_id}:{artifact_id} found in repository {self.root}"
            )
        versions: list[str] = [p.name for p in artifact_dir.iterdir() if p.is_dir() is True]
        return sorted(versions, key=version_key)

    def resolve_artifact(self, group_id: str, artifact_id: str, version: str) -> pathlib.Path:
        """Locate an artifact's jar file.

        :param group_id: Group identifier.
        :param artifact_id: Artifact identifier.
        :param version: Exact version.
        :returns: Path of the jar file.
        :raises ResolutionError: If the file does not exist.
        """

        path: pathlib.Path = (
            self._artifact_dir(group_id, artifact_id) / version / f"{artifact_id}-{version}.jar"
        )
        if path.is_file() is False:
            raise ResolutionError(f"{group_id}:{artifact_id}:{version} not found in repository {self.root}")
        return path


class RuntimeArtifact:
    """The capsule runtime jar, resolved lazily and at most once.

    The builder owns one instance per invocation and hands it to every
    variant that needs runtime classes.
    """

    def __init__(
        self,
        *,
        artifacts: ArtifactResolver,
        version: str,
        logger: logging.Logger | None = None,
    ) -> None:
        if logger is None:
            logger = logging.getLogger("capsule_packer")
        self.version: str = version
        self._artifacts: ArtifactResolver = artifacts
        self._logger: logging.Logger = logger
        self._path: pathlib.Path | None = None
        self.resolutions: int = 0

    def path(self) -> pathlib.Path:
        """Return the runtime jar path, resolving it on first use.

        :returns: Local path of the runtime jar.
        :raises ResolutionError: If the runtime cannot be resolved.
        """

        if self._path is None:
            try:
                resolved: pathlib.Path = self._artifacts.resolve_artifact(
                    CAPSULE_GROUP, CAPSULE_ARTIFACT, self.version
                )
            except OSError as e:
                raise ResolutionError(f"Capsule runtime not found in repositories: {e}") from e
            self.resolutions += 1
            self._path = resolved
            if self._logger.isEnabledFor(logging.DEBUG) is True:
                self._logger.debug(f"capsule-packer: runtime artifact={resolved}")
        return self._path


def resolve_runtime_version(
    *,
    configured: str | None,
    versions: VersionRangeResolver,
) -> str:
    """Return the configured runtime version or the latest release.

    :param configured: Explicitly configured version, if any.
    :param versions: Version range resolver.
    :returns: Runtime version.
    :raises ResolutionError: If no release version can be found.
    """

    if configured is not None and len(configured) > 0:
        return configured

    try:
        available: list[str] = versions.resolve_versions(CAPSULE_GROUP, CAPSULE_ARTIFACT)
    except OSError as e:
        raise ResolutionError(f"Could not resolve capsule runtime versions: {e}") from e

    latest: str | None = select_latest_release(available)
    if latest is None:
        raise ResolutionError(
            f"No release version of {CAPSULE_GROUP}:{CAPSULE_ARTIFACT} available (found {available})"
        )
    return latest


def resolve_dependency_artifacts(
    dependencies: tuple[Dependency, ...] | list[Dependency],
    artifacts: ArtifactResolver | None,
) -> tuple[DependencyArtifact, ...]:
    """Look up the file of every dependency.

    A declared file wins over the resolver. Dependencies outside the
    ``compile``/``runtime`` scopes are marked as excluded without lookup.

    :param dependencies: Declared dependencies.
    :param artifacts: Optional artifact resolver for dependencies without a file.
    :returns: One :class:`DependencyArtifact` per dependency, in order.
    """

    out: list[DependencyArtifact] = []
    for dep in dependencies:
        if dep.is_runtime_scoped() is False:
            out.append(DependencyArtifact(dependency=dep, state=ArtifactState.SCOPE_EXCLUDED))
            continue

        file: pathlib.Path | None = dep.file
        if file is None and artifacts is not None:
            try:
                file = artifacts.resolve_artifact(dep.group_id, dep.artifact_id, dep.version)
            except ResolutionError as e:
                out.append(
                    DependencyArtifact(dependency=dep, state=ArtifactState.UNRESOLVED, reason=str(e))
                )
                continue

        if file is None:
            out.append(DependencyArtifact(dependency=dep, state=ArtifactState.UNRESOLVED))
        elif file.is_file() is False:
            out.append(DependencyArtifact(dependency=dep, state=ArtifactState.MISSING_FILE, file=file))
        else:
            out.append(DependencyArtifact(dependency=dep, state=ArtifactState.RESOLVED, file=file))
    return tuple(out)
