"""Persistent record of dlx packages and binaries (``.dlx-manifest.json``)."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from .config import DLX_MANIFEST_FILENAME, resolve_dlx_dir
from .locking import file_lock
from .utils import now_ms

logger = logging.getLogger(__name__)

ENTRY_TYPE_PACKAGE = "package"
ENTRY_TYPE_BINARY = "binary"


@dataclass(slots=True)
class UpdateCheck:
    last_check: int
    last_notification: int
    latest_known: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_check": self.last_check,
            "last_notification": self.last_notification,
            "latest_known": self.latest_known,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "UpdateCheck | None":
        if not isinstance(data, Mapping):
            return None
        return cls(
            last_check=int(data.get("last_check", 0)),
            last_notification=int(data.get("last_notification", 0)),
            latest_known=str(data.get("latest_known", "")),
        )


@dataclass(slots=True)
class BinarySource:
    type: str = "download"
    url: str | None = None
    path: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type}
        if self.url is not None:
            data["url"] = self.url
        if self.path is not None:
            data["path"] = self.path
        return data


@dataclass(slots=True)
class PackageDetails:
    installed_version: str
    size: int | None = None
    update_check: UpdateCheck | None = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"installed_version": self.installed_version}
        if self.size is not None:
            data["size"] = self.size
        if self.update_check is not None:
            data["update_check"] = self.update_check.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PackageDetails":
        size = data.get("size")
        return cls(
            installed_version=str(data["installed_version"]),
            size=int(size) if size is not None else None,
            update_check=UpdateCheck.from_dict(data.get("update_check")),
        )


@dataclass(slots=True)
class BinaryDetails:
    checksum: str
    checksum_algorithm: str
    platform: str
    arch: str
    size: int
    source: BinarySource = field(default_factory=BinarySource)
    integrity: str | None = None
    update_check: UpdateCheck | None = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "checksum": self.checksum,
            "checksum_algorithm": self.checksum_algorithm,
            "platform": self.platform,
            "arch": self.arch,
            "size": self.size,
            "source": self.source.to_dict(),
        }
        if self.integrity is not None:
            data["integrity"] = self.integrity
        if self.update_check is not None:
            data["update_check"] = self.update_check.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BinaryDetails":
        source = data.get("source") or {}
        if not isinstance(source, Mapping):
            raise ValueError("source must be an object")
        return cls(
            checksum=str(data.get("checksum", "")),
            checksum_algorithm=str(data.get("checksum_algorithm", "sha256")),
            platform=str(data["platform"]),
            arch=str(data["arch"]),
            size=int(data["size"]),
            source=BinarySource(
                type=str(source.get("type", "download")),
                url=source.get("url"),
                path=source.get("path"),
            ),
            integrity=data.get("integrity"),
            update_check=UpdateCheck.from_dict(data.get("update_check")),
        )


@dataclass(slots=True)
class ManifestEntry:
    """A typed manifest record; ``type`` selects the shape of ``details``."""

    type: str
    cache_key: str
    timestamp: int
    details: Union[PackageDetails, BinaryDetails]

    @property
    def is_package(self) -> bool:
        return self.type == ENTRY_TYPE_PACKAGE

    @property
    def is_binary(self) -> bool:
        return self.type == ENTRY_TYPE_BINARY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "cache_key": self.cache_key,
            "timestamp": self.timestamp,
            "details": self.details.to_dict(),
        }


@dataclass(slots=True)
class StoreRecord:
    """Legacy manifest record tracking fetch and notification times."""

    version: str
    timestamp_fetch: int
    timestamp_notification: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "timestampFetch": self.timestamp_fetch,
            "timestampNotification": self.timestamp_notification,
        }


Record = Union[ManifestEntry, StoreRecord]


def parse_record(raw: object) -> Record | None:
    """Return the typed record for a raw manifest value.

    A value carrying a ``type`` key is a :class:`ManifestEntry`; anything else
    shaped like ``{version, timestampFetch, timestampNotification}`` is a
    :class:`StoreRecord`. Malformed values yield ``None``.
    """

    if not isinstance(raw, Mapping):
        return None
    try:
        if "type" in raw:
            entry_type = raw["type"]
            details = raw.get("details")
            if not isinstance(details, Mapping):
                return None
            if entry_type == ENTRY_TYPE_PACKAGE:
                parsed: Union[PackageDetails, BinaryDetails] = PackageDetails.from_dict(details)
            elif entry_type == ENTRY_TYPE_BINARY:
                parsed = BinaryDetails.from_dict(details)
            else:
                return None
            return ManifestEntry(
                type=entry_type,
                cache_key=str(raw["cache_key"]),
                timestamp=int(raw["timestamp"]),
                details=parsed,
            )
        return StoreRecord(
            version=str(raw["version"]),
            timestamp_fetch=int(raw["timestampFetch"]),
            timestamp_notification=int(raw.get("timestampNotification", 0)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.debug("Ignoring malformed manifest record: %s", exc)
        return None


class DlxManifest:
    """JSON manifest keyed by package spec or binary name."""

    def __init__(self, manifest_path: Path | str | None = None) -> None:
        self._manifest_path = Path(manifest_path) if manifest_path is not None else None

    @property
    def manifest_path(self) -> Path:
        if self._manifest_path is not None:
            return self._manifest_path
        return resolve_dlx_dir() / DLX_MANIFEST_FILENAME

    @property
    def lock_path(self) -> Path:
        path = self.manifest_path
        return path.with_name(f"{path.name}.lock")

    def _read(self) -> Dict[str, Any]:
        path = self.manifest_path
        try:
            content = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.debug("Failed to read manifest %s: %s", path, exc)
            return {}
        if not content:
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            logger.debug("Failed to parse manifest %s: %s", path, exc)
            return {}
        if not isinstance(data, dict):
            logger.debug("Ignoring non-object manifest %s", path)
            return {}
        return data

    def _write(self, data: Mapping[str, Any]) -> None:
        path = self.manifest_path
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{path.name}.", suffix=".tmp", dir=path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _update(self, spec: str, value: Dict[str, Any] | None) -> None:
        with file_lock(self.lock_path):
            data = self._read()
            if value is None:
                if spec not in data:
                    return
                del data[spec]
            else:
                data[spec] = value
            self._write(data)

    def get_manifest_entry(self, spec: str) -> ManifestEntry | None:
        record = parse_record(self._read().get(spec))
        return record if isinstance(record, ManifestEntry) else None

    def set_package_entry(self, spec: str, cache_key: str, details: PackageDetails) -> None:
        entry = ManifestEntry(ENTRY_TYPE_PACKAGE, cache_key, now_ms(), details)
        self._update(spec, entry.to_dict())

    def set_binary_entry(self, spec: str, cache_key: str, details: BinaryDetails) -> None:
        entry = ManifestEntry(ENTRY_TYPE_BINARY, cache_key, now_ms(), details)
        self._update(spec, entry.to_dict())

    def get(self, name: str) -> StoreRecord | None:
        record = parse_record(self._read().get(name))
        return record if isinstance(record, StoreRecord) else None

    def set(self, name: str, record: StoreRecord) -> None:
        self._update(name, record.to_dict())

    def clear(self, name: str) -> None:
        if not self.manifest_path.exists():
            return
        self._update(name, None)

    def clear_all(self) -> None:
        path = self.manifest_path
        if not path.exists():
            return
        with file_lock(self.lock_path):
            try:
                path.unlink()
            except FileNotFoundError:
                return

    def is_fresh(
        self, record: StoreRecord | None, ttl_ms: int, *, now: int | None = None
    ) -> bool:
        if record is None:
            return False
        current = now_ms() if now is None else now
        return current - record.timestamp_fetch < ttl_ms

    def get_all_packages(self) -> list[str]:
        return list(self._read().keys())


dlx_manifest = DlxManifest()
