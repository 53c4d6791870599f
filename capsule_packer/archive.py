"""Archive writer.

Streams named entries into a jar (zip) file in the order they are written.
Python's :mod:`zipfile` happily writes the same name twice; jar tooling does
not, so the writer tracks names itself and turns a repeated name into a
:class:`~DuplicateEntryError` that it discards. The first write wins.
"""

import logging
import pathlib
import time
import zipfile

MANIFEST_NAME: str = "META-INF/MANIFEST.MF"


class DuplicateEntryError(ValueError):
    """Raised internally when an entry name is already present in the archive."""


class ArchiveWriter:
    """Write entries into a new archive file.

    The file at ``path`` is created (or truncated) on construction. Use the
    writer as a context manager so the underlying handle is released on every
    exit path.
    """

    def __init__(
        self,
        path: pathlib.Path,
        *,
        compresslevel: int = 6,
        logger: logging.Logger | None = None,
    ) -> None:
        """Open an archive for writing.

        :param path: Output archive path.
        :param compresslevel: Deflate compression level (0-9).
        :param logger: Optional logger for debug output.
        """

        if logger is None:
            logger = logging.getLogger("capsule_packer")

        self.path: pathlib.Path = path
        self._logger: logging.Logger = logger
        self._compresslevel: int = compresslevel
        self._names: set[str] = set()
        self._order: list[str] = []
        self._date_time: tuple[int, int, int, int, int, int] = time.localtime(time.time())[0:6]
        self._zf: zipfile.ZipFile = zipfile.ZipFile(
            path,
            "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compresslevel,
        )

    def __enter__(self) -> "ArchiveWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def names(self) -> list[str]:
        """Entry names in write order."""

        return list(self._order)

    def write_entry(self, name: str, data: bytes) -> bool:
        """Write a file entry.

        :param name: Entry name inside the archive (``/`` separated).
        :param data: Entry content.
        :returns: ``True`` if written, ``False`` if the name already existed.
        """

        try:
            self._put(name, data, is_dir=False)
        except DuplicateEntryError:
            if self._logger.isEnabledFor(logging.DEBUG) is True:
                self._logger.debug(f"capsule-packer: skipping duplicate entry {name} in {self.path.name}")
            return False
        return True

    def write_file(self, name: str, path: pathlib.Path) -> bool:
        """Write the content of a file on disk as an entry.

        :param name: Entry name inside the archive.
        :param path: Source file.
        :returns: ``True`` if written, ``False`` if the name already existed.
        """

        with open(path, "rb") as f:
            data: bytes = f.read()
        return self.write_entry(name, data)

    def write_directory(self, name: str) -> bool:
        """Write an explicit directory record.

        :param name: Directory name; a trailing ``/`` is added when missing.
        :returns: ``True`` if written, ``False`` if the name already existed.
        """

        if name.endswith("/") is False:
            name = name + "/"
        try:
            self._put(name, b"", is_dir=True)
        except DuplicateEntryError:
            return False
        return True

    def close(self) -> None:
        self._zf.close()

    def _put(self, name: str, data: bytes, *, is_dir: bool) -> None:
        """Write an entry, refusing names that were already written.

        :param name: Entry name.
        :param data: Entry content.
        :param is_dir: Whether the entry is a directory record.
        :raises DuplicateEntryError: If ``name`` was already written.
        """

        if name in self._names:
            raise DuplicateEntryError(f"duplicate entry: {name}")

        info: zipfile.ZipInfo = zipfile.ZipInfo(name, date_time=self._date_time)
        if is_dir is True:
            info.compress_type = zipfile.ZIP_STORED
            info.external_attr = (0o40755 << 16) | 0x10
        else:
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
        self._zf.writestr(info, data, compresslevel=self._compresslevel)
        self._names.add(name)
        self._order.append(name)
