from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any
import shutil
from uuid import uuid4
import warnings

import yaml

from .errors import StoreError
from .store import Document

EVENT_LOG_FILE = "reservation_events.yaml"


class YamlEventLog:
    """Append-only YAML journal of ``{event_time, event_type, payload}`` entries."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("[]\n", encoding="utf-8")

    def record(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        events = self.events()
        events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
        _write_yaml_list(self.path, events)

    def events(self) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            _backup_corrupted(self.path)
            self.path.write_text("[]\n", encoding="utf-8")
            self.record("YAML_RECOVERED", {"file": self.path.name, "reason": str(error)})
            return self.events()

        if not isinstance(payload, list):
            return []
        return [row for row in payload if isinstance(row, dict)]


def record_event(
    event_log: Any,
    event_type: str,
    payload: dict[str, Any],
    event_time: datetime | None = None,
) -> None:
    """Journal an event for a change that is already stored.

    A journal write failure cannot undo that change, so it is reported as a
    ``RuntimeWarning`` instead of being raised to the caller.
    """
    if event_log is None:
        return
    try:
        event_log.record(event_type, payload, event_time)
    except StoreError as error:
        warnings.warn(f"Event journal write failed for {event_type}: {error}", RuntimeWarning, stacklevel=3)


class YamlDocumentStore:
    """Document store keeping one YAML list per collection under ``base_dir``.

    File access is synchronous; the coroutine methods only satisfy the
    store interface and never yield mid-write.
    """

    def __init__(self, base_dir: str | Path = "data", event_log: YamlEventLog | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.event_log = event_log or YamlEventLog(self.base_dir / EVENT_LOG_FILE)

    def collection_path(self, collection: str) -> Path:
        if not collection or "/" in collection or "\\" in collection or collection.startswith("."):
            raise StoreError(f"Invalid collection name: {collection!r}")
        return self.base_dir / f"{collection}.yaml"

    def _read_yaml_list(self, path: Path) -> list[Document]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[Document] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict) and row.get("id") is not None:
                sanitized.append(row)
            else:
                self.event_log.record(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping with an id",
                    },
                )
        return sanitized

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        backup_path = _backup_corrupted(path)
        path.write_text("[]\n", encoding="utf-8")
        self.event_log.record(
            "YAML_RECOVERED",
            {
                "file": str(path.name),
                "backup": str(backup_path.name),
                "reason": str(error),
            },
        )

    def _rows(self, collection: str) -> tuple[Path, list[Document]]:
        path = self.collection_path(collection)
        return path, self._read_yaml_list(path)

    async def list_all(self, collection: str) -> list[Document]:
        _, rows = self._rows(collection)
        return [_normalize(row) for row in rows]

    async def insert(self, collection: str, record: Document) -> str:
        path, rows = self._rows(collection)
        document_id = uuid4().hex
        rows.append({"id": document_id, **_body(record)})
        _write_yaml_list(path, rows)
        return document_id

    async def set_by_id(self, collection: str, document_id: str, record: Document) -> None:
        path, rows = self._rows(collection)
        replacement = {"id": document_id, **_body(record)}
        index = _find_index(rows, document_id)
        if index < 0:
            rows.append(replacement)
        else:
            rows[index] = replacement
        _write_yaml_list(path, rows)

    async def update_by_id(self, collection: str, document_id: str, partial: Document) -> None:
        path, rows = self._rows(collection)
        index = _find_index(rows, document_id)
        if index < 0:
            raise StoreError(f"No document to update: {collection}/{document_id}")
        rows[index] = {**rows[index], **_body(partial)}
        _write_yaml_list(path, rows)

    async def delete_by_id(self, collection: str, document_id: str) -> None:
        path, rows = self._rows(collection)
        remaining = [row for row in rows if str(row.get("id")) != document_id]
        if len(remaining) != len(rows):
            _write_yaml_list(path, remaining)

    async def get_by_id(self, collection: str, document_id: str) -> Document | None:
        _, rows = self._rows(collection)
        index = _find_index(rows, document_id)
        return None if index < 0 else _normalize(rows[index])

    async def query_by_field(self, collection: str, field: str, value: Any) -> list[Document]:
        _, rows = self._rows(collection)
        return [_normalize(row) for row in rows if field in row and row[field] == value]


def _write_yaml_list(path: Path, rows: list[dict[str, Any]]) -> None:
    temp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
        temp_path.replace(path)
    except OSError as error:
        raise StoreError(f"Failed to write YAML file: {path}") from error
    finally:
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)


def _backup_corrupted(path: Path) -> Path:
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
    try:
        if path.exists():
            shutil.copy2(path, backup_path)
    except OSError as error:
        raise StoreError(f"Failed to back up corrupted YAML file: {path}") from error
    return backup_path


def _find_index(rows: list[Document], document_id: str) -> int:
    for index, row in enumerate(rows):
        if str(row.get("id")) == document_id:
            return index
    return -1


def _body(record: Document) -> Document:
    return {key: value for key, value in record.items() if key != "id"}


def _normalize(row: Document) -> Document:
    return {**row, "id": str(row["id"])}
