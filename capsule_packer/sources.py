"""Entry sources.

Each function here yields ``(archive name, content)`` pairs for one kind of
capsule content. None of them writes anything; the builder streams what they
yield into an :class:`~capsule_packer.archive.ArchiveWriter`.
"""

import os
import pathlib
from typing import Iterator
import zipfile

from capsule_packer.config import FileSet
from capsule_packer.diagnostics import Diagnostics
from capsule_packer.errors import ResolutionError

RUNTIME_MAIN_CLASS: str = "Capsule"
RUNTIME_MAIN_CLASS_ENTRY: str = RUNTIME_MAIN_CLASS + ".class"
RUNTIME_MARKER: str = "capsule"

_SKIPPED_NAMES: frozenset[str] = frozenset({".DS_Store", "MANIFEST.MF"})

# An entry whose content is ``None`` is a directory record.
Entry = tuple[str, bytes | None]


def walk_files(root: pathlib.Path) -> Iterator[pathlib.Path]:
    """Yield regular files under ``root`` depth-first.

    Files of a directory come before its subdirectories; both are visited in
    name order. The walk is lazy, so callers can stop after the first hit.
    Symbolic links to files are yielded; links to directories are not
    followed.

    :param root: Directory to walk.
    :returns: Iterator over file paths.
    """

    try:
        with os.scandir(root) as it:
            children: list[os.DirEntry[str]] = sorted(it, key=lambda e: e.name)
    except FileNotFoundError:
        return

    subdirs: list[pathlib.Path] = []
    for child in children:
        if child.is_dir(follow_symlinks=False) is True:
            subdirs.append(pathlib.Path(child.path))
        elif child.is_file() is True:
            yield pathlib.Path(child.path)
    for d in subdirs:
        yield from walk_files(d)


def archive_name(path: pathlib.Path, root: pathlib.Path) -> str:
    """Name of ``path`` inside an archive rooted at ``root``.

    :param path: File under ``root``.
    :param root: Archive root directory.
    :returns: ``/`` separated relative path.
    """

    return path.relative_to(root).as_posix()


def iter_compiled_entries(classes_dir: pathlib.Path) -> Iterator[Entry]:
    """Yield every compiled-output file.

    OS metadata files and stray ``MANIFEST.MF`` files are skipped.

    :param classes_dir: Compiled-output directory.
    :returns: Iterator over entries.
    """

    for path in walk_files(classes_dir):
        if path.name in _SKIPPED_NAMES:
            continue
        yield archive_name(path, classes_dir), path.read_bytes()


def iter_runtime_entries(runtime_jar: pathlib.Path, *, main_class_only: bool) -> Iterator[Entry]:
    """Yield the capsule runtime classes from the runtime jar.

    :param runtime_jar: Capsule runtime jar.
    :param main_class_only: Only yield the launcher class itself (fat capsules).
    :returns: Iterator over entries.
    :raises ResolutionError: If the launcher class is requested but missing.
    """

    try:
        zf: zipfile.ZipFile = zipfile.ZipFile(runtime_jar, "r")
    except zipfile.BadZipFile as e:
        raise ResolutionError(f"Capsule runtime is not a valid archive: {runtime_jar}") from e

    with zf:
        if main_class_only is True:
            try:
                data: bytes = zf.read(RUNTIME_MAIN_CLASS_ENTRY)
            except KeyError as e:
                raise ResolutionError(
                    f"Capsule runtime {runtime_jar.name} has no {RUNTIME_MAIN_CLASS_ENTRY}"
                ) from e
            yield RUNTIME_MAIN_CLASS_ENTRY, data
            return

        for info in zf.infolist():
            name: str = info.filename
            if RUNTIME_MARKER not in name and name != RUNTIME_MAIN_CLASS_ENTRY:
                continue
            if info.is_dir() is True:
                yield name, None
            else:
                yield name, zf.read(info)


def iter_file_set_entries(file_sets: tuple[FileSet, ...], diagnostics: Diagnostics) -> Iterator[Entry]:
    """Yield the files of every usable file set.

    :param file_sets: Declared file sets.
    :param diagnostics: Collector for skipped sets.
    :returns: Iterator over entries.
    :raises OSError: If a declared include cannot be read.
    """

    for fs in file_sets:
        if fs.directory is None:
            continue
        if fs.directory.is_dir() is False:
            diagnostics.warn(
                "file-set-not-directory",
                f"Attempted to include files from non-directory [{fs.directory.resolve()}], skipping.",
            )
            continue

        prefix: str = ""
        if fs.output_directory is not None and len(fs.output_directory) > 0:
            prefix = fs.output_directory
            if prefix.endswith("/") is False:
                prefix += "/"
            yield prefix, None

        for include in fs.includes:
            yield prefix + include, (fs.directory / include).read_bytes()


def locate_caplets(
    classes_dir: pathlib.Path,
    fragments: list[str],
    diagnostics: Diagnostics,
) -> dict[str, pathlib.Path]:
    """Find the compiled class file of every caplet fragment.

    A fragment matches the first file, in :func:`~walk_files` order, whose
    path relative to ``classes_dir`` contains it.

    :param classes_dir: Compiled-output directory.
    :param fragments: Caplet class name fragments.
    :param diagnostics: Collector for fragments without a match.
    :returns: Matched files keyed by fragment, in request order.
    """

    found: dict[str, pathlib.Path] = {}
    for fragment in fragments:
        for path in walk_files(classes_dir):
            if fragment in archive_name(path, classes_dir):
                found[fragment] = path
                break
        if fragment not in found:
            diagnostics.warn("caplet-not-found", f"Could not find caplet {fragment} class, skipping.")
    return found
