"""Tests for the command line interface."""

from __future__ import annotations

import logging
import pathlib
import zipfile
from collections.abc import Iterator

import pytest

from capsule_packer.cli import main

from conftest import CLASS_FILES


@pytest.fixture(autouse=True)
def _restore_logger() -> Iterator[None]:
    logger = logging.getLogger("capsule_packer")
    yield
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def _write_project(root: pathlib.Path) -> pathlib.Path:
    for name, data in CLASS_FILES.items():
        p = root / "target" / "classes" / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
    descriptor = root / "capsule.toml"
    descriptor.write_text(
        """
[project]
group_id = "com.example"
artifact_id = "demo"
version = "1.2.3"

[[project.dependencies]]
group_id = "org.acme"
artifact_id = "lib-a"
version = "1.0"

[[project.dependencies]]
group_id = "org.acme"
artifact_id = "missing"
version = "0.1"

[capsule]
app_class = "com.example.Main"
""",
        encoding="utf-8",
    )
    return descriptor


def test_cli_build(
    tmp_path: pathlib.Path, repo_root: pathlib.Path, capsys: pytest.CaptureFixture[str]
) -> None:
    descriptor = _write_project(tmp_path / "proj")
    code = main(
        [
            "build",
            "--project",
            str(descriptor),
            "--repository",
            str(repo_root),
            "--types",
            "thin,fat",
            "--chmod",
            "-q",
        ]
    )
    assert code == 0

    target = tmp_path / "proj" / "target"
    thin = target / "demo-1.2.3-capsule-thin.jar"
    fat = target / "demo-1.2.3-capsule-fat.jar"
    assert thin.is_file()
    assert fat.is_file()
    assert not (target / "demo-1.2.3-capsule-empty.jar").exists()
    assert (target / "demo-1.2.3-capsule-thin.x").is_file()
    assert (target / "demo-1.2.3-capsule-fat.x").is_file()

    with zipfile.ZipFile(fat) as zf:
        names = zf.namelist()
    assert "lib-a-1.0.jar" in names
    assert "missing-0.1.jar" not in names

    printed = capsys.readouterr().out.splitlines()
    assert str(thin) in printed
    assert len(printed) == 4


def test_cli_overrides_app_class(tmp_path: pathlib.Path, repo_root: pathlib.Path) -> None:
    descriptor = _write_project(tmp_path / "proj")
    main(
        [
            "build",
            "-p",
            str(descriptor),
            "--repository",
            str(repo_root),
            "--types",
            "empty",
            "--app-class",
            "com.example.Other",
            "--capsule-version",
            "1.0.1",
            "-q",
            "-q",
        ]
    )
    empty = tmp_path / "proj" / "target" / "demo-1.2.3-capsule-empty.jar"
    with zipfile.ZipFile(empty) as zf:
        text = zf.read("META-INF/MANIFEST.MF").decode("utf-8")
    assert "Application-Class: com.example.Other\r\n" in text
