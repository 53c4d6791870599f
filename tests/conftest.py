"""Shared fixtures: a compiled project tree and a local repository."""

from __future__ import annotations

import pathlib
import zipfile

import pytest

from capsule_packer.project import Dependency, Project, Repository
from capsule_packer.resolver import LocalRepository

RUNTIME_ENTRIES: dict[str, bytes] = {
    "META-INF/MANIFEST.MF": b"Manifest-Version: 1.0\r\nMain-Class: Capsule\r\n\r\n",
    "Capsule.class": b"launcher",
    "capsule/": b"",
    "capsule/DependencyManager.class": b"deps",
    "capsule/Jar.class": b"jar",
    "other/Thing.class": b"thing",
}

CLASS_FILES: dict[str, bytes] = {
    "com/example/Main.class": b"main",
    "com/example/MyCaplet.class": b"caplet",
    "com/example/util/Helper.class": b"helper",
    "app.properties": b"greeting=hi\n",
    ".DS_Store": b"junk",
    "META-INF/MANIFEST.MF": b"Manifest-Version: 1.0\r\n\r\n",
}


def make_jar(path: pathlib.Path, entries: dict[str, bytes]) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


def install(repo_root: pathlib.Path, group: str, artifact: str, version: str, entries: dict[str, bytes]) -> pathlib.Path:
    target: pathlib.Path = repo_root.joinpath(*group.split(".")) / artifact / version / f"{artifact}-{version}.jar"
    return make_jar(target, entries)


@pytest.fixture()
def repo_root(tmp_path: pathlib.Path) -> pathlib.Path:
    root: pathlib.Path = tmp_path / "repo"
    for version in ("1.0.1", "1.0.3", "1.1.0-SNAPSHOT"):
        install(root, "co.paralleluniverse", "capsule", version, RUNTIME_ENTRIES)
    install(root, "org.acme", "lib-a", "1.0", {"org/acme/A.class": b"a"})
    install(root, "org.acme", "lib-c", "2.0", {"org/acme/C.class": b"c"})
    return root


@pytest.fixture()
def repository(repo_root: pathlib.Path) -> LocalRepository:
    return LocalRepository(repo_root)


@pytest.fixture()
def build_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    target: pathlib.Path = tmp_path / "target"
    for name, data in CLASS_FILES.items():
        p: pathlib.Path = target / "classes" / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
    return target


@pytest.fixture()
def project(tmp_path: pathlib.Path, build_dir: pathlib.Path) -> Project:
    return Project(
        group_id="com.example",
        artifact_id="demo",
        version="1.2.3",
        build_dir=build_dir,
        final_name="demo-1.2.3",
        dependencies=(
            Dependency("org.acme", "lib-a", "1.0", "compile", ("org.x:x", "org.y:y")),
            Dependency("org.acme", "lib-c", "2.0", "runtime"),
            Dependency("junit", "junit", "4.13", "test"),
            Dependency("javax.servlet", "servlet-api", "3.1", "provided"),
        ),
        repositories=(
            Repository("central", "https://repo1.maven.org/maven2/"),
            Repository("local", "file:///tmp/repo"),
        ),
    )
