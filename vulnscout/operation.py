"""Cache maintenance and database download operations shared by the commands."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from typing import Protocol

from vulnscout.db import Client, DBError, Metadata, MetadataFile
from vulnscout.options import LOGGER_NAME

_log = logging.getLogger(LOGGER_NAME)


class OperationError(Exception):
    """Raised when a cache or database operation fails."""


class ArtifactCache(Protocol):
    """Storage of analysed artifacts and blobs."""

    def clear(self) -> None: ...

    def close(self) -> None: ...


@dataclass
class Cache:
    """Local cache: the database directory plus an artifact cache."""

    cache_dir: str
    artifacts: ArtifactCache

    def __enter__(self) -> Cache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def reset(self) -> None:
        """Remove both the database and the artifact cache."""
        try:
            self.clear_db()
        except OperationError as exc:
            raise OperationError(f"failed to clear the database: {exc}") from exc
        try:
            self.clear_artifacts()
        except OperationError as exc:
            raise OperationError(f"failed to clear the artifact cache: {exc}") from exc

    def clear_db(self) -> None:
        """Remove the whole cache directory."""
        _log.info("Removing DB file...")
        try:
            shutil.rmtree(self.cache_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise OperationError(
                f"failed to remove the directory ({self.cache_dir}) : {exc}"
            ) from exc

    def clear_artifacts(self) -> None:
        """Empty the artifact cache."""
        _log.info("Removing artifact caches...")
        try:
            self.artifacts.clear()
        except Exception as exc:
            raise OperationError(f"failed to remove the cache: {exc}") from exc

    def close(self) -> None:
        self.artifacts.close()


def download_db(
    client: Client, app_version: str, cache_dir: str, light: bool, skip_update: bool
) -> None:
    """Download the database if it is missing or stale, then check its metadata."""
    try:
        needs_update = client.needs_update(app_version, light, skip_update)
    except DBError as exc:
        raise OperationError(f"database error: {exc}") from exc

    if needs_update:
        _log.info("Need to update DB")
        _log.info("Downloading DB...")
        try:
            client.download(cache_dir, light)
        except DBError as exc:
            raise OperationError(f"failed to download vulnerability DB: {exc}") from exc
        try:
            client.update_metadata(cache_dir)
        except DBError as exc:
            raise OperationError(f"unable to update database metadata: {exc}") from exc

    try:
        show_db_info(cache_dir)
    except OperationError as exc:
        raise OperationError(f"failed to show database info: {exc}") from exc


def show_db_info(cache_dir: str) -> Metadata:
    """Log and return the metadata of the database in the cache directory."""
    try:
        metadata = MetadataFile.for_cache_dir(cache_dir).get()
    except DBError as exc:
        raise OperationError(f"something wrong with DB: {exc}") from exc
    _log.debug(
        "DB Schema: %d, Type: %d, UpdatedAt: %s, NextUpdate: %s, DownloadedAt: %s",
        metadata.version,
        int(metadata.type),
        metadata.updated_at,
        metadata.next_update,
        metadata.downloaded_at,
    )
    return metadata