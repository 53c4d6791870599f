"""Tests for manifest rendering and parsing."""

from __future__ import annotations

import pytest

from capsule_packer.manifest import Attributes, Manifest, ManifestError, parse_manifest


def _manifest(main: dict[str, str], sections: dict[str, dict[str, str]] | None = None) -> Manifest:
    m = Manifest(main=Attributes(main))
    for name, attrs in (sections or {}).items():
        m.sections[name] = Attributes(attrs)
    return m


def test_round_trip_independent_of_order() -> None:
    """Parsing a rendered manifest gives back the same mapping."""
    a = _manifest(
        {"Manifest-Version": "1.0", "Main-Class": "Capsule", "Application-Class": "com.example.Main"},
        {"debug": {"System-Properties": "log=debug"}},
    )
    b = _manifest(
        {"Application-Class": "com.example.Main", "Main-Class": "Capsule", "Manifest-Version": "1.0"},
        {"debug": {"System-Properties": "log=debug"}},
    )
    assert parse_manifest(a.render()) == a
    assert parse_manifest(b.render()) == a


def test_manifest_version_rendered_first() -> None:
    m = _manifest({"Main-Class": "Capsule", "Manifest-Version": "1.0"})
    assert m.render().startswith(b"Manifest-Version: 1.0\r\n")


def test_long_values_wrap_at_72_bytes() -> None:
    """Long values use continuation lines and survive a round trip."""
    value = " ".join(f"org.example:artifact-{i}:1.0.{i}" for i in range(20))
    m = _manifest({"Manifest-Version": "1.0", "Dependencies": value})
    data = m.render()
    for line in data.split(b"\r\n"):
        assert len(line) <= 72
    assert parse_manifest(data).main["Dependencies"] == value


def test_wrapping_keeps_multibyte_characters_whole() -> None:
    value = "é" * 100
    m = _manifest({"Application-Name": value})
    data = m.render()
    for line in data.split(b"\r\n"):
        line.decode("utf-8")
        assert len(line) <= 72
    assert parse_manifest(data).main["Application-Name"] == value


def test_trailing_spaces_preserved() -> None:
    m = _manifest({"JVM-Args": "-Xmx1g -Xms1g "})
    assert parse_manifest(m.render()).main["JVM-Args"] == "-Xmx1g -Xms1g "


def test_names_are_case_insensitive_last_write_wins() -> None:
    attrs = Attributes()
    attrs["Main-Class"] = "Capsule"
    attrs["main-class"] = "com.example.Main"
    assert len(attrs) == 1
    assert attrs["MAIN-CLASS"] == "com.example.Main"
    assert list(attrs) == ["main-class"]


@pytest.mark.parametrize("name", ["", "Has Space", "Colon:Name", "x" * 71])
def test_invalid_names_rejected(name: str) -> None:
    with pytest.raises(ManifestError):
        Attributes()[name] = "v"


def test_line_breaks_in_values_rejected() -> None:
    with pytest.raises(ManifestError):
        Attributes()["Key"] = "a\nb"


def test_sections_rendered_with_name_header() -> None:
    m = _manifest({"Manifest-Version": "1.0"}, {"debug": {"JVM-Args": "-ea"}})
    text = m.render().decode("utf-8")
    assert "\r\n\r\nName: debug\r\nJVM-Args: -ea\r\n" in text


def test_parse_rejects_malformed_line() -> None:
    with pytest.raises(ManifestError):
        parse_manifest(b"Manifest-Version 1.0\r\n")


def test_describe_lists_every_item() -> None:
    m = _manifest({"Main-Class": "Capsule"}, {"debug": {"JVM-Args": "-ea"}})
    assert m.describe() == ["Manifest:", "\tMain-Class: Capsule", "Name: debug", "\tJVM-Args: -ea"]


@pytest.mark.parametrize("name", ["", "debug\r\nMain-Class: Evil", "debug\nX: y", "nul\0"])
def test_bad_section_names_rejected(name: str) -> None:
    m = Manifest()
    with pytest.raises(ManifestError):
        m.add_section(name, Attributes({"A": "b"}))
    assert m.sections == {}
