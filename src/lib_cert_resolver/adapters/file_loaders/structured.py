"""Readers for the documents that may hold the ``certs`` table.

A certificate table usually lives in ``pyproject.toml`` under
``[tool.lib_cert_resolver]``, but a dedicated ``certs.json`` or ``certs.yaml``
works too. Each reader turns raw bytes into a mapping; the shared base class
owns the file access, the "must be a mapping" check, and the structured log
events, so a format only supplies its parser and the exceptions it raises.

:func:`loader_for` picks a reader from the file suffix and
:func:`extract_certs` digs the table out of the parsed document. Both are used
by :func:`lib_cert_resolver.core.load_certificate_table`.
"""

from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import ClassVar, Mapping

import yaml

from ...domain.errors import InvalidFormat, NotFound
from ...observability import log_debug, log_error

TOOL_TABLE_NAMES = ("lib_cert_resolver", "lib-cert-resolver")
"""Names accepted under ``[tool]`` when a document has no top-level ``certs``."""


class BaseFileLoader:
    """Template for the format readers: read, parse, check the shape, log.

    Subclasses set :attr:`format` and :attr:`parse_errors` and implement
    :meth:`_parse`.
    """

    format: ClassVar[str] = "unknown"
    parse_errors: ClassVar[tuple[type[Exception], ...]] = (ValueError,)

    def load(self, path: str) -> Mapping[str, object]:
        """Return the document at *path* as a mapping.

        Raises
        ------
        NotFound
            When *path* is not an existing file.
        InvalidFormat
            When the file cannot be read, the bytes do not parse, or the top
            level is not a mapping.
        """

        raw = self._read(path)
        try:
            data = self._parse(raw)
        except self.parse_errors as exc:
            log_error("config_file_invalid", layer="file", path=path, format=self.format, error=str(exc))
            raise InvalidFormat(f"Invalid {self.format.upper()} in {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise InvalidFormat(f"File {path} did not produce a mapping (got {type(data).__name__})")
        log_debug("config_file_loaded", layer="file", path=path, format=self.format, keys=len(data))
        return data

    def _parse(self, raw: bytes) -> object:
        raise NotImplementedError

    @staticmethod
    def _read(path: str) -> bytes:
        file_path = Path(path)
        if not file_path.is_file():
            raise NotFound(f"Configuration file not found: {path}")
        try:
            return file_path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFound(f"Configuration file not found: {path}") from exc
        except OSError as exc:
            log_error("config_file_unreadable", layer="file", path=path, error=str(exc))
            raise InvalidFormat(f"Cannot read configuration file {path}: {exc}") from exc


class TOMLFileLoader(BaseFileLoader):
    """``pyproject.toml`` and other TOML documents, via :mod:`tomllib`."""

    format = "toml"
    parse_errors = (tomllib.TOMLDecodeError, UnicodeDecodeError)

    def _parse(self, raw: bytes) -> object:
        return tomllib.loads(raw.decode("utf-8"))


class JSONFileLoader(BaseFileLoader):
    """JSON documents such as ``package.json``; key order is preserved.

    Examples
    --------
    >>> from tempfile import TemporaryDirectory
    >>> with TemporaryDirectory() as folder:
    ...     target = Path(folder, "certs.json")
    ...     _ = target.write_text('{"certs": {"dev": {"cert": "a", "key": "b"}}}')
    ...     JSONFileLoader().load(str(target))["certs"]["dev"]["key"]
    'b'
    """

    format = "json"
    parse_errors = (json.JSONDecodeError, UnicodeDecodeError)

    def _parse(self, raw: bytes) -> object:
        return json.loads(raw)


class YAMLFileLoader(BaseFileLoader):
    """YAML documents via ``yaml.safe_load``; an empty document is an empty mapping."""

    format = "yaml"
    parse_errors = (yaml.YAMLError,)

    def _parse(self, raw: bytes) -> object:
        data = yaml.safe_load(raw)
        return {} if data is None else data


_FILE_LOADERS: dict[str, BaseFileLoader] = {
    ".toml": TOMLFileLoader(),
    ".json": JSONFileLoader(),
    ".yaml": YAMLFileLoader(),
    ".yml": YAMLFileLoader(),
}


def loader_for(path: str) -> BaseFileLoader:
    """Return the loader registered for the suffix of *path*.

    Raises
    ------
    InvalidFormat
        When the suffix is not one of ``.toml``, ``.json``, ``.yaml``, ``.yml``.

    Examples
    --------
    >>> type(loader_for("package.json")).__name__
    'JSONFileLoader'
    """

    loader = _FILE_LOADERS.get(Path(path).suffix.lower())
    if loader is None:
        raise InvalidFormat(f"Unsupported configuration format for {path}; use .toml, .json, .yaml or .yml")
    return loader


def extract_certs(document: Mapping[str, object]) -> object:
    """Return the raw ``certs`` value of *document*.

    The top-level ``certs`` key wins; ``[tool.lib_cert_resolver]`` (or the
    dashed spelling) is consulted otherwise so the table can live in
    ``pyproject.toml``.

    Raises
    ------
    InvalidFormat
        When no ``certs`` key exists.

    Examples
    --------
    >>> extract_certs({"tool": {"lib-cert-resolver": {"certs": {"dev": {}}}}})
    {'dev': {}}
    """

    if "certs" in document:
        return document["certs"]
    tool = document.get("tool")
    if isinstance(tool, Mapping):
        for name in TOOL_TABLE_NAMES:
            section = tool.get(name)
            if isinstance(section, Mapping) and "certs" in section:
                return section["certs"]
    raise InvalidFormat("Document has no 'certs' table")
