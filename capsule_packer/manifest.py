"""Jar manifest model, rendering and parsing.

A manifest is a main attribute section followed by named sections. Attribute
names are case-insensitive tokens. The rendered form follows the jar file
specification: ``Name: value`` lines ending in CRLF, no line longer than 72
bytes (longer values continue on lines starting with a single space), and
sections separated by an empty line.
"""

from dataclasses import dataclass, field
import re
from typing import Iterator

MANIFEST_VERSION: str = "Manifest-Version"

_NAME_RE: re.Pattern[str] = re.compile(r"^[A-Za-z0-9_-]{1,70}$")
_MAX_LINE_BYTES: int = 72


class ManifestError(ValueError):
    """Raised for invalid attribute names or values, or unparseable manifests."""


def validate_attribute_name(name: str) -> str:
    """Check an attribute name.

    :param name: Candidate name.
    :returns: The name, unchanged.
    :raises ManifestError: If the name is not a valid manifest token.
    """

    if _NAME_RE.match(name) is None:
        raise ManifestError(f"Invalid manifest attribute name: {name!r}")
    return name


def _check_value(name: str, value: str) -> None:
    if "\n" in value or "\r" in value or "\0" in value:
        raise ManifestError(f"Manifest attribute {name!r} has a line break in its value")


class Attributes:
    """Ordered attribute section with case-insensitive names.

    Setting a name that is already present (in any letter case) replaces the
    value and keeps its original position; the latest spelling is kept.
    """

    def __init__(self, items: dict[str, str] | None = None) -> None:
        self._data: dict[str, tuple[str, str]] = {}
        if items is not None:
            for k, v in items.items():
                self[k] = v

    def __setitem__(self, name: str, value: str) -> None:
        validate_attribute_name(name)
        _check_value(name, value)
        self._data[name.lower()] = (name, value)

    def __getitem__(self, name: str) -> str:
        return self._data[name.lower()][1]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        for name, _ in self._data.values():
            yield name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Attributes):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return f"Attributes({self.items()!r})"

    def get(self, name: str, default: str | None = None) -> str | None:
        item: tuple[str, str] | None = self._data.get(name.lower())
        if item is None:
            return default
        return item[1]

    def items(self) -> list[tuple[str, str]]:
        return list(self._data.values())

    def as_dict(self) -> dict[str, str]:
        """Return a plain ``{lowercase name: value}`` mapping for comparisons."""

        return {k: v for k, (_, v) in self._data.items()}


@dataclass(slots=True)
class Manifest:
    """Main attribute section plus named sections.

    :ivar main: Main section.
    :ivar sections: Named sections, in insertion order.
    """

    main: Attributes = field(default_factory=Attributes)
    sections: dict[str, Attributes] = field(default_factory=dict)

    def add_section(self, name: str, attrs: Attributes) -> None:
        """Add (or replace) a named section.

        :param name: Section name, written as its ``Name`` attribute.
        :param attrs: Section attributes.
        :raises ManifestError: If the name is empty or has a line break.
        """

        if len(name) == 0:
            raise ManifestError("Manifest section name is empty")
        _check_value("Name", name)
        self.sections[name] = attrs

    def render(self) -> bytes:
        """Serialize the manifest.

        :returns: Manifest bytes (UTF-8, CRLF line endings).
        """

        out: list[bytes] = []
        version: str | None = self.main.get(MANIFEST_VERSION)
        if version is not None:
            out.append(_render_line(MANIFEST_VERSION, version))
        for name, value in self.main.items():
            if name.lower() == MANIFEST_VERSION.lower():
                continue
            out.append(_render_line(name, value))
        out.append(b"\r\n")

        for section_name, attrs in self.sections.items():
            out.append(_render_line("Name", section_name))
            for name, value in attrs.items():
                out.append(_render_line(name, value))
            out.append(b"\r\n")
        return b"".join(out)

    def describe(self) -> list[str]:
        """Human-readable dump of the manifest, one line per item.

        :returns: Lines suitable for debug logging.
        """

        lines: list[str] = ["Manifest:"]
        for name, value in self.main.items():
            lines.append(f"\t{name}: {value}")
        for section_name, attrs in self.sections.items():
            lines.append(f"Name: {section_name}")
            for name, value in attrs.items():
                lines.append(f"\t{name}: {value}")
        return lines


def _render_line(name: str, value: str) -> bytes:
    """Render one ``name: value`` line, wrapped at 72 bytes.

    Wrapping never splits a multi-byte UTF-8 character.

    :param name: Attribute name.
    :param value: Attribute value.
    :returns: Encoded line(s) including the trailing CRLF.
    """

    text: str = f"{name}: {value}"
    chunks: list[bytes] = []
    current: bytearray = bytearray()
    for ch in text:
        b: bytes = ch.encode("utf-8")
        if len(current) + len(b) > _MAX_LINE_BYTES:
            chunks.append(bytes(current))
            current = bytearray(b" ")
        current.extend(b)
    chunks.append(bytes(current))
    return b"\r\n".join(chunks) + b"\r\n"


def parse_manifest(data: bytes) -> Manifest:
    """Parse manifest bytes.

    :param data: Manifest content.
    :returns: Parsed manifest.
    :raises ManifestError: If a line is malformed.
    """

    text: str = data.decode("utf-8")
    raw_lines: list[str] = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    # Join continuation lines first; an empty line is kept as a section break.
    lines: list[str] = []
    for raw in raw_lines:
        if raw.startswith(" ") is True:
            if len(lines) == 0 or lines[-1] == "":
                raise ManifestError("Manifest continuation line without a preceding attribute")
            lines[-1] = lines[-1] + raw[1:]
            continue
        lines.append(raw)

    manifest: Manifest = Manifest()
    current: Attributes = manifest.main
    in_main: bool = True
    at_section_start: bool = False
    for line in lines:
        if line == "":
            in_main = False
            at_section_start = True
            continue

        name, sep, value = line.partition(": ")
        if sep == "":
            raise ManifestError(f"Malformed manifest line: {line!r}")

        if in_main is False and at_section_start is True:
            if name.lower() != "name":
                raise ManifestError(f"Manifest section does not start with Name: {line!r}")
            current = Attributes()
            manifest.sections[value] = current
            at_section_start = False
            continue

        current[name] = value

    return manifest
