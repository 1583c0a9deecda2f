# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Manifest editing for the target package (Project.toml and friends).

The manifest in the target repository is partly maintained by hand, so it
is edited line by line rather than parsed and re-serialized: comments, key
order and formatting all survive, and only the lines for the keys being set
change. `tomllib` is used to read the parsed view and to check that every
edit leaves a document that still parses.

Supported edits are "ensure (section, key) = value":
  - the key exists in the section → its line is replaced in place, keeping
    any trailing comment; an equal value leaves the line alone
  - the section exists, the key doesn't → a line is added at the end of the section
  - the section doesn't exist → it is appended at the end of the document

The root table is addressed as section "". Values are written as TOML basic
strings. There is no deletion.
"""

import json
import logging
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from bindrel.logging.logger import get_logger
from bindrel.release.errors import ManifestError
from bindrel.utils.filesystem import atomic_write, safe_read

_logger: logging.Logger = get_logger(__name__)

ROOT_SECTION = ""

_TABLE_HEADER = re.compile(r"^\s*\[\s*([^\[\]]+?)\s*\]\s*(?:#.*)?$")
_ARRAY_TABLE_HEADER = re.compile(r"^\s*\[\[")
_KEY_LINE = re.compile(r'^(\s*)("(?:[^"\\]|\\.)*"|[A-Za-z0-9_-]+)\s*=')
_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")
# Single-line value after the "=", with an optional trailing comment.
_VALUE_TAIL = re.compile(r"""\s*(?:"(?:[^"\\]|\\.)*"|'[^']*'|[^\s#]+)(\s*#.*?)?\s*$""")


@dataclass(frozen=True)
class ManifestEntry:
    """A (section, key, value) triple the manifest must contain."""

    section: str
    key: str
    value: str


@dataclass(frozen=True)
class ManifestUpdate:
    """Which requested entries actually changed the manifest."""

    changed: tuple[ManifestEntry, ...]
    unchanged: tuple[ManifestEntry, ...]


@dataclass(frozen=True)
class _Span:
    """Line range of one table: header index (None for the root) and end (exclusive)."""

    header: Optional[int]
    start: int
    end: int


def _normalize_key(raw: str) -> str:
    if raw.startswith('"'):
        return json.loads(raw)
    return raw


def _format_key(key: str) -> str:
    if _BARE_KEY.match(key):
        return key
    return json.dumps(key, ensure_ascii=False)


def _format_value(value: str) -> str:
    # JSON string escapes are a subset of TOML basic string escapes.
    return json.dumps(value, ensure_ascii=False)


def _normalize_section(raw: str) -> str:
    return ".".join(part.strip() for part in raw.split("."))


class Manifest:
    """
    A manifest held as its original lines.

    Use `parse_manifest` / `load_manifest` to build one; they validate the
    text up front.
    """

    def __init__(self, lines: list[str], path: Optional[Path] = None) -> None:
        self._lines = lines
        self.path = path
        self._newline = "\r\n" if lines and lines[0].endswith("\r\n") else "\n"

    @property
    def text(self) -> str:
        return "".join(self._lines)

    def parsed(self) -> dict[str, Any]:
        """The full document as `tomllib` reads it."""
        try:
            return tomllib.loads(self.text)
        except tomllib.TOMLDecodeError as err:
            raise ManifestError(
                f"Manifest is not valid TOML: {err}",
                path=str(self.path) if self.path else None,
            ) from err

    def sections(self) -> dict[str, dict[str, Any]]:
        """
        Section → (key → value) view. Root-level scalar keys live under "".
        Nested tables are reported under their dotted names.
        """
        result: dict[str, dict[str, Any]] = {ROOT_SECTION: {}}

        def walk(prefix: str, table: dict[str, Any]) -> None:
            for key, value in table.items():
                if isinstance(value, dict):
                    name = f"{prefix}.{key}" if prefix else key
                    result.setdefault(name, {})
                    walk(name, value)
                else:
                    result.setdefault(prefix, {})[key] = value

        walk(ROOT_SECTION, self.parsed())
        return result

    def get(self, section: str, key: str) -> Optional[Any]:
        return self.sections().get(section, {}).get(key)

    def _spans(self) -> dict[str, _Span]:
        spans: dict[str, _Span] = {}
        current = ROOT_SECTION
        header: Optional[int] = None
        start = 0

        for index, line in enumerate(self._lines):
            if _ARRAY_TABLE_HEADER.match(line):
                spans.setdefault(current, _Span(header, start, index))
                current, header, start = f"[[{index}]]", index, index + 1
                continue
            match = _TABLE_HEADER.match(line)
            if match:
                spans.setdefault(current, _Span(header, start, index))
                current, header, start = _normalize_section(match.group(1)), index, index + 1

        spans.setdefault(current, _Span(header, start, len(self._lines)))
        return spans

    def _find_key(self, span: _Span, key: str) -> Optional[int]:
        for index in range(span.start, span.end):
            match = _KEY_LINE.match(self._lines[index])
            if match and _normalize_key(match.group(2)) == key:
                return index
        return None

    def _last_content_line(self, span: _Span) -> int:
        """Index after the last non-blank, non-comment line of a span (the header counts)."""
        last = span.start if span.header is None else span.header + 1
        for index in range(span.start, span.end):
            stripped = self._lines[index].strip()
            if stripped and not stripped.startswith("#"):
                last = index + 1
        return last

    def _ensure_trailing_newline(self) -> None:
        if self._lines and not self._lines[-1].endswith("\n"):
            self._lines[-1] += self._newline

    def set(self, section: str, key: str, value: str) -> bool:
        """
        Ensure `key = "value"` in `section`. Returns True when the text changed.

        Raises:
            ManifestError: If the result would not parse.
        """
        section = _normalize_section(section) if section else ROOT_SECTION
        spans = self._spans()
        snapshot = list(self._lines)

        if section in spans:
            span = spans[section]
            existing = self._find_key(span, key)
            if existing is not None:
                if self.get(section, key) == value:
                    return False
                line = self._lines[existing]
                match = _KEY_LINE.match(line)
                assert match is not None
                body = line.rstrip("\r\n")
                terminator = line[len(body):]
                tail = _VALUE_TAIL.match(body[match.end():])
                comment = tail.group(1) if tail and tail.group(1) else ""
                self._lines[existing] = (
                    f"{match.group(1)}{match.group(2)} = {_format_value(value)}{comment}{terminator}"
                )
            else:
                insert_at = self._last_content_line(span)
                if insert_at == len(self._lines):
                    self._ensure_trailing_newline()
                new_line = f"{_format_key(key)} = {_format_value(value)}{self._newline}"
                self._lines.insert(insert_at, new_line)
        else:
            self._ensure_trailing_newline()
            if self._lines and self._lines[-1].strip():
                self._lines.append(self._newline)
            self._lines.append(f"[{section}]{self._newline}")
            self._lines.append(f"{_format_key(key)} = {_format_value(value)}{self._newline}")

        try:
            tomllib.loads(self.text)
        except tomllib.TOMLDecodeError as err:
            self._lines = snapshot
            raise ManifestError(
                f"Setting [{section}] {key} would leave the manifest unparseable: {err}",
                path=str(self.path) if self.path else None,
            ) from err
        return True


def parse_manifest(text: str, path: Optional[Path] = None) -> Manifest:
    """
    Build a Manifest from text, checking that it parses.

    Raises:
        ManifestError: If the text is not valid TOML.
    """
    manifest = Manifest(text.splitlines(keepends=True), path=path)
    manifest.parsed()
    return manifest


def load_manifest(path: Path) -> Manifest:
    """
    Read a manifest from disk.

    Raises:
        ManifestError: If the file is missing, unreadable or not valid TOML.
    """
    try:
        text = safe_read(path)
    except OSError as err:
        raise ManifestError(f"Cannot read manifest {path}: {err}", path=str(path)) from err
    return parse_manifest(text, path=path)


def update_manifest(manifest: Manifest, entries: Iterable[ManifestEntry]) -> ManifestUpdate:
    """
    Apply every entry to the manifest in order.

    Applying the same entries again reports them all as unchanged.
    """
    changed: list[ManifestEntry] = []
    unchanged: list[ManifestEntry] = []
    for entry in entries:
        if manifest.set(entry.section, entry.key, entry.value):
            changed.append(entry)
            _logger.debug(
                "Manifest entry set",
                extra={"section": entry.section, "key": entry.key, "value": entry.value},
            )
        else:
            unchanged.append(entry)
    return ManifestUpdate(changed=tuple(changed), unchanged=tuple(unchanged))


def write_manifest(manifest: Manifest, path: Path) -> None:
    """Write a manifest atomically."""
    atomic_write(path, manifest.text)
    _logger.info("Manifest written", extra={"path": str(path)})
