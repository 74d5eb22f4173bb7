"""
Persistence collaborators.

The core only needs a key/value blob store. A Library binds one collection
(kits, patterns or arrangements) to a Store and converts between blobs and
model objects; anything that does not parse is skipped with a warning so one
bad record never blocks loading the rest.
"""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, Protocol, TypeVar

from beatlab.errors import ConfigurationError, ResourceUnavailable
from beatlab.instruments.pads import Kit
from beatlab.sequencing.arrangement import SongArrangement
from beatlab.sequencing.pattern import SequencerPattern

logger = logging.getLogger(__name__)

Blob = Dict[str, Any]


class Store(Protocol):
    def get(self, key: str) -> Optional[Blob]: ...
    def put(self, key: str, data: Blob) -> None: ...
    def delete(self, key: str) -> None: ...
    def list(self) -> List[str]: ...


class MemoryStore:
    def __init__(self):
        self._data: Dict[str, Blob] = {}

    def get(self, key: str) -> Optional[Blob]:
        blob = self._data.get(key)
        return json.loads(json.dumps(blob)) if blob is not None else None

    def put(self, key: str, data: Blob) -> None:
        self._data[key] = json.loads(json.dumps(data))

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def list(self) -> List[str]:
        return list(self._data)


class JsonFileStore:
    """One JSON document holding every record of a collection."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Blob]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error("corrupt store %s: %s", self.path, e)
            return {}
        except OSError as e:
            raise ResourceUnavailable(f"cannot read {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Blob]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            tmp.replace(self.path)
        except OSError as e:
            raise ResourceUnavailable(f"cannot write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[Blob]:
        with self._lock:
            return self._read().get(key)

    def put(self, key: str, data: Blob) -> None:
        with self._lock:
            records = self._read()
            records[key] = data
            self._write(records)

    def delete(self, key: str) -> None:
        with self._lock:
            records = self._read()
            if records.pop(key, None) is not None:
                self._write(records)

    def list(self) -> List[str]:
        with self._lock:
            return list(self._read())


T = TypeVar("T")


class Library(Generic[T]):
    kind = "record"
    collection = "records"

    def __init__(self, store: Store, decode: Callable[[Blob], T], encode: Callable[[T], Blob]):
        self.store = store
        self._decode = decode
        self._encode = encode

    def get(self, key: str) -> Optional[T]:
        blob = self.store.get(key)
        if blob is None:
            return None
        try:
            return self._decode(blob)
        except ConfigurationError as e:
            logger.warning("skipping unreadable %s %r: %s", self.kind, key, e)
            return None

    def load_all(self) -> List[T]:
        items = []
        for key in self.store.list():
            item = self.get(key)
            if item is not None:
                items.append(item)
        return items

    def save(self, item: T) -> None:
        self.store.put(item.id, self._encode(item))  # type: ignore[attr-defined]

    def delete(self, key: str) -> None:
        self.store.delete(key)


class KitLibrary(Library[Kit]):
    kind = "kit"
    collection = "kits"

    def __init__(self, store: Store):
        super().__init__(store, Kit.from_dict, Kit.to_dict)


class PatternLibrary(Library[SequencerPattern]):
    """Stored grids are repaired to 16 steps on load."""
    kind = "pattern"
    collection = "patterns"

    def __init__(self, store: Store):
        super().__init__(store, lambda blob: SequencerPattern.from_dict(blob, coerce=True),
                         SequencerPattern.to_dict)


class ArrangementLibrary(Library[SongArrangement]):
    kind = "arrangement"
    collection = "arrangements"

    def __init__(self, store: Store):
        super().__init__(store, SongArrangement.from_dict, SongArrangement.to_dict)


# store_for(collection) -> the Store holding that collection only
StoreFactory = Callable[[str], Store]


def memory_stores() -> StoreFactory:
    return lambda collection: MemoryStore()


def json_file_stores(directory: str | Path) -> StoreFactory:
    """One JSON file per collection under `directory`, e.g. kits.json."""
    root = Path(directory)
    return lambda collection: JsonFileStore(root / f"{collection}.json")
