"""Tests for self-executing capsule copies."""

from __future__ import annotations

import os
import pathlib
import stat

from capsule_packer.executable import EXEC_PREFIX, EXEC_TRAMPOLINE_PREFIX, make_executable


def test_make_executable(tmp_path: pathlib.Path) -> None:
    jar = tmp_path / "app-capsule.jar"
    jar.write_bytes(b"PK\x03\x04payload")
    out = make_executable(jar, prefix=EXEC_PREFIX, suffix=".x")

    assert out == tmp_path / "app-capsule.x"
    data = out.read_bytes()
    assert data.startswith(b"#!/bin/sh\n")
    assert data[len(EXEC_PREFIX) :] == jar.read_bytes()
    assert out.stat().st_mode & stat.S_IXUSR
    assert os.access(out, os.X_OK)


def test_trampoline_prefix() -> None:
    assert "-Dcapsule.trampoline" in EXEC_TRAMPOLINE_PREFIX
    assert "-Dcapsule.trampoline" not in EXEC_PREFIX
    assert EXEC_TRAMPOLINE_PREFIX.startswith("#!/bin/sh\n")
