"""Self-executing capsule copies.

A capsule is a plain zip, and zip readers find the central directory from the
end of the file, so a shell prologue in front of the archive keeps it valid
while letting the file be run directly.
"""

import logging
import os
import pathlib
import shutil
import stat

EXEC_PREFIX: str = '#!/bin/sh\n\nexec java -jar "$0" "$@"\n\n'
EXEC_TRAMPOLINE_PREFIX: str = '#!/bin/sh\n\nexec java -Dcapsule.trampoline -jar "$0" "$@"\n\n'

EXEC_SUFFIX: str = ".x"
EXEC_TRAMPOLINE_SUFFIX: str = ".tx"


def make_executable(
    archive_path: pathlib.Path,
    *,
    prefix: str,
    suffix: str,
    logger: logging.Logger | None = None,
) -> pathlib.Path:
    """Write ``prefix`` followed by the archive bytes to a sibling file.

    :param archive_path: Capsule archive.
    :param prefix: Launcher prologue (ASCII).
    :param suffix: Extension of the new file, replacing the archive's.
    :param logger: Optional logger for progress output.
    :returns: Path of the executable copy.
    """

    if logger is None:
        logger = logging.getLogger("capsule_packer")

    out_path: pathlib.Path = archive_path.with_suffix(suffix)
    with open(out_path, "wb") as out, open(archive_path, "rb") as src:
        out.write(prefix.encode("ascii"))
        shutil.copyfileobj(src, out)

    mode: int = os.stat(out_path).st_mode
    os.chmod(out_path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    logger.info(f"capsule-packer: created {out_path.name}")
    return out_path
