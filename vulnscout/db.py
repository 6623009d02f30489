"""Vulnerability database metadata and the client that keeps the database current."""

from __future__ import annotations

import itertools
import json
import logging
import os
import re
import zlib
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any, BinaryIO, Protocol

from vulnscout.options import LOGGER_NAME

SCHEMA_VERSION = 1

FULL_DB = "trivy.db.gz"
LIGHT_DB = "trivy-light.db.gz"
DB_FILE = "trivy.db"
METADATA_FILE = "metadata.json"

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_MAX_DB_SIZE = 2 * 1024 * 1024 * 1024
_CHUNK_SIZE = 64 * 1024
_GZIP_HEADER_SIZE = 10

_log = logging.getLogger(LOGGER_NAME)

_TIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)


class DBError(Exception):
    """Raised when the vulnerability database or its metadata cannot be used."""


class DBType(IntEnum):
    """Flavour of the vulnerability database."""

    FULL = 0
    LIGHT = 1


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_time(value: Any) -> datetime:
    if value is None:
        return ZERO_TIME
    if not isinstance(value, str):
        raise ValueError(f"invalid time value: {value!r}")
    match = _TIME_RE.match(value)
    if match is None:
        raise ValueError(f"invalid time value: {value!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    microsecond = int((fraction or "").ljust(6, "0")[:6] or "0")
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second),
        microsecond, tzinfo=tz,
    )


@dataclass
class Metadata:
    """Schema version, flavour and timestamps of a downloaded database."""

    version: int = 0
    type: DBType = DBType.FULL
    next_update: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME
    downloaded_at: datetime = ZERO_TIME

    def to_json(self) -> str:
        return json.dumps(
            {
                "Version": self.version,
                "Type": int(self.type),
                "NextUpdate": _format_time(self.next_update),
                "UpdatedAt": _format_time(self.updated_at),
                "DownloadedAt": _format_time(self.downloaded_at),
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, text: str) -> Metadata:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("metadata must be a JSON object")
        return cls(
            version=int(data.get("Version", 0)),
            type=DBType(int(data.get("Type", 0))),
            next_update=_parse_time(data.get("NextUpdate")),
            updated_at=_parse_time(data.get("UpdatedAt")),
            downloaded_at=_parse_time(data.get("DownloadedAt")),
        )


def db_path(cache_dir: str) -> str:
    """Return the path of the database file inside the cache directory."""
    return os.path.join(cache_dir, "db", DB_FILE)


def metadata_path(cache_dir: str) -> str:
    """Return the path of the metadata file next to the database file."""
    return os.path.join(os.path.dirname(db_path(cache_dir)), METADATA_FILE)


@dataclass(frozen=True)
class MetadataFile:
    """The metadata file describing the locally stored database."""

    path: str

    @classmethod
    def for_cache_dir(cls, cache_dir: str) -> MetadataFile:
        return cls(metadata_path(cache_dir))

    def get(self) -> Metadata:
        try:
            with open(self.path, encoding="utf-8") as handle:
                text = handle.read()
        except OSError as exc:
            raise DBError(f"unable to open a file: {exc}") from exc
        try:
            return Metadata.from_json(text)
        except (ValueError, TypeError) as exc:
            raise DBError(f"unable to decode metadata: {exc}") from exc

    def delete(self) -> None:
        try:
            os.remove(self.path)
        except OSError as exc:
            raise DBError(f"unable to remove the metadata file: {exc}") from exc


class MetadataStore(Protocol):
    """Reads metadata from the database and persists it next to it."""

    def get_metadata(self) -> Metadata: ...

    def store_metadata(self, metadata: Metadata, directory: str) -> None: ...


Downloader = Callable[[str], "tuple[BinaryIO, int]"]


class _ProgressReader:
    def __init__(
        self,
        stream: BinaryIO,
        total: int,
        on_progress: Callable[[int, int], None] | None,
    ) -> None:
        self._stream = stream
        self._total = total
        self._on_progress = on_progress
        self.count = 0

    def read(self, size: int) -> bytes:
        data = self._stream.read(size)
        if data:
            self.count += len(data)
            if self._on_progress is not None:
                self._on_progress(self.count, self._total)
        return data

    def read_at_least(self, size: int) -> bytes:
        buffer = b""
        while len(buffer) < size:
            data = self.read(_CHUNK_SIZE)
            if not data:
                break
            buffer += data
        return buffer


def _inflate(chunks: Iterator[bytes]) -> Iterator[bytes]:
    """Decompress a stream of one or more concatenated gzip members."""
    decompressor = zlib.decompressobj(wbits=31)
    for chunk in chunks:
        data = chunk
        while data:
            if decompressor.eof:
                decompressor = zlib.decompressobj(wbits=31)
            yield decompressor.decompress(data)
            data = decompressor.unused_data if decompressor.eof else b""
    if not decompressor.eof:
        raise EOFError("unexpected EOF")


@dataclass
class Client:
    """Decides when the database needs refreshing and downloads it."""

    metadata: MetadataFile
    store: MetadataStore | None = None
    downloader: Downloader | None = None
    clock: Callable[[], datetime] = _utc_now
    on_progress: Callable[[int, int], None] | None = None

    def needs_update(self, cli_version: str, light: bool, skip: bool) -> bool:
        """Return whether a fresh database has to be downloaded."""
        db_type = DBType.LIGHT if light else DBType.FULL

        try:
            metadata = self.metadata.get()
        except DBError as exc:
            _log.debug("There is no valid metadata file: %s", exc)
            if skip:
                _log.error("The first run cannot skip downloading DB")
                raise DBError("--skip-update cannot be specified on the first run") from exc
            metadata = Metadata()

        if SCHEMA_VERSION < metadata.version:
            _log.error("Version (%s) is old. Update to the latest version.", cli_version)
            raise DBError(
                "the version of DB schema doesn't match. "
                f"Local DB: {metadata.version}, Expected: {SCHEMA_VERSION}"
            )

        if skip:
            self._validate(db_type, metadata)
            return False

        if SCHEMA_VERSION != metadata.version or metadata.type != db_type:
            return True

        return not self._is_new(metadata)

    def _validate(self, db_type: DBType, metadata: Metadata) -> None:
        if SCHEMA_VERSION != metadata.version:
            _log.error("The local DB is old and needs to be updated")
            raise DBError("--skip-update cannot be specified with the old DB")
        if metadata.type != db_type:
            if db_type == DBType.FULL:
                _log.error("The local DB is a lightweight DB. You have to download a full DB")
            else:
                _log.error("The local DB is a full DB. You have to download a lightweight DB")
            raise DBError("--skip-update cannot be specified with the different schema DB")

    def _is_new(self, metadata: Metadata) -> bool:
        now = _as_utc(self.clock())
        if now < _as_utc(metadata.next_update):
            _log.debug("DB update was skipped because DB is the latest")
            return True
        if now < _as_utc(metadata.downloaded_at) + timedelta(hours=1):
            _log.debug("DB update was skipped because DB was downloaded during the last hour")
            return True
        return False

    def download(self, cache_dir: str, light: bool) -> None:
        """Download and unpack the database into the cache directory."""
        try:
            self.metadata.delete()
        except DBError:
            _log.debug("no metadata file")

        file_name = LIGHT_DB if light else FULL_DB
        if self.downloader is None:
            raise DBError("failed to download vulnerability DB: no downloader configured")
        try:
            stream, size = self.downloader(file_name)
        except Exception as exc:
            raise DBError(f"failed to download vulnerability DB: {exc}") from exc

        try:
            self._save(stream, size, db_path(cache_dir))
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

    def _save(self, stream: BinaryIO, size: int, path: str) -> None:
        reader = _ProgressReader(stream, size, self.on_progress)
        head = reader.read_at_least(_GZIP_HEADER_SIZE)
        if len(head) < _GZIP_HEADER_SIZE:
            raise DBError("invalid gzip file: unexpected EOF")
        if head[:3] != b"\x1f\x8b\x08":
            raise DBError("invalid gzip file: gzip: invalid header")

        try:
            os.makedirs(os.path.dirname(path), mode=0o700, exist_ok=True)
        except OSError as exc:
            raise DBError(f"failed to mkdir: {exc}") from exc

        try:
            out = open(path, "wb")
        except OSError as exc:
            raise DBError(f"unable to open DB file: {exc}") from exc

        chunks = itertools.chain([head], iter(lambda: reader.read(_CHUNK_SIZE), b""))
        remaining = _MAX_DB_SIZE
        with out:
            try:
                for data in _inflate(chunks):
                    piece = data[:remaining]
                    out.write(piece)
                    remaining -= len(piece)
                    if remaining <= 0:
                        break
            except (zlib.error, EOFError, OSError) as exc:
                raise DBError(f"failed to save DB file: {exc}") from exc

    def update_metadata(self, cache_dir: str) -> None:
        """Record the download time in the stored metadata."""
        _log.debug("Updating database metadata...")
        if self.store is None:
            raise DBError("unable to get metadata: no metadata store configured")

        try:
            metadata = self.store.get_metadata()
        except Exception as exc:
            raise DBError(f"unable to get metadata: {exc}") from exc

        metadata = replace(metadata, downloaded_at=_as_utc(self.clock()))
        try:
            self.store.store_metadata(metadata, os.path.join(cache_dir, "db"))
        except Exception as exc:
            raise DBError(f"failed to store metadata: {exc}") from exc