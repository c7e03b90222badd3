"""
Shared durable translation cache.

The second cache tier, shared by every user and every process that
points at the same storage:

    1. Ephemeral TTL cache (cache.py): per process, keyed by every field
    2. Shared cache (this module): durable, keyed by (text, language) only

Because the key ignores user-specific context, this tier is only used for
requests without a contextual prompt. Otherwise one user's tailored
phrasing would be served to everybody.

Persistence is delegated to a TranslationStore. Two are provided:

    InMemoryTranslationStore   tests and single-process development
    FileTranslationStore       sharded JSON files, atomic writes

File layout (FileTranslationStore):
    {base_dir}/
        3f/
            3fa9...c1.json
        a0/
            a07e...9b.json

Store failures never fail a translation: a broken read is a miss, a
broken write is a no-op. Both are logged.

Usage:
    cache = SharedTranslationCache(FileTranslationStore("./storage/translations"))
    record = await cache.lookup("hello", "vi")
    if record is None:
        ...
        await cache.store("hello", "vi", "xin chào", "신짜오")
"""
from __future__ import annotations

import asyncio
import hashlib
import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Optional, Protocol

from translate_ms.core.logging import get_logger, info, verbose, warn
from translate_ms.utils.text import normalize_for_key
from translate_ms.utils.timeit import timeit

_LOG = get_logger("translate-ms.shared-cache")


def make_shared_key(source_text: str, target_lang: str) -> str:
    """
    SHA-256 over the normalized ``"{text}:{lang}"`` pair.

    Text is whitespace-normalized and the language lower-cased, so
    ``("hello ", "VI")`` and ``("hello", "vi")`` share a key while any
    difference in wording or language does not.

    Returns:
        64-character lowercase hex string.
    """
    payload = f"{normalize_for_key(source_text)}:{target_lang.strip().lower()}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass
class TranslationRecord:
    """A stored translation and its popularity counter."""
    translation: str
    pronunciation: str = ""
    hits: int = 0
    source_text: str = ""
    target_lang: str = ""
    updated_at: float = field(default_factory=time.time)


class TranslationStore(Protocol):
    """Durable persistence used by the shared cache."""

    async def read_by_hash(self, key: str) -> Optional[TranslationRecord]:
        ...

    async def increment_hits(self, key: str) -> None:
        ...

    async def upsert_by_hash(
        self,
        key: str,
        source_text: str,
        target_lang: str,
        translation: str,
        pronunciation: str,
    ) -> None:
        ...


class InMemoryTranslationStore:
    """Dictionary-backed store. Process-local, lost on restart."""

    def __init__(self) -> None:
        self._records: Dict[str, TranslationRecord] = {}

    async def read_by_hash(self, key: str) -> Optional[TranslationRecord]:
        record = self._records.get(key)
        return TranslationRecord(**asdict(record)) if record else None

    async def increment_hits(self, key: str) -> None:
        record = self._records.get(key)
        if record is not None:
            record.hits += 1

    async def upsert_by_hash(
        self,
        key: str,
        source_text: str,
        target_lang: str,
        translation: str,
        pronunciation: str,
    ) -> None:
        existing = self._records.get(key)
        self._records[key] = TranslationRecord(
            translation=translation,
            pronunciation=pronunciation,
            hits=existing.hits if existing else 0,
            source_text=source_text,
            target_lang=target_lang,
        )

    def __len__(self) -> int:
        return len(self._records)


class FileTranslationStore:
    """
    One JSON file per key in a sharded directory tree.

    Blocking file I/O runs in a worker thread so the event loop keeps
    serving other requests. Writes go to a temp file that is then
    renamed over the target, so a crash never leaves a torn record.
    Errors propagate; SharedTranslationCache decides what is fatal.
    """

    def __init__(self, base_dir: str):
        self._base_dir = Path(base_dir)

    def _path(self, key: str) -> Path:
        return self._base_dir / key[:2] / f"{key}.json"

    def _read(self, key: str) -> Optional[TranslationRecord]:
        p = self._path(key)
        if not p.exists():
            return None
        data = json.loads(p.read_text(encoding="utf-8"))
        return TranslationRecord(**data)

    def _write(self, key: str, record: TranslationRecord) -> None:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_suffix(".tmp")
        try:
            tmp.write_text(json.dumps(asdict(record), ensure_ascii=False), encoding="utf-8")
            tmp.replace(p)
        finally:
            if tmp.exists():
                tmp.unlink()

    def _increment(self, key: str) -> None:
        record = self._read(key)
        if record is None:
            return
        record.hits += 1
        self._write(key, record)

    def _upsert(
        self,
        key: str,
        source_text: str,
        target_lang: str,
        translation: str,
        pronunciation: str,
    ) -> None:
        existing = self._read(key)
        self._write(key, TranslationRecord(
            translation=translation,
            pronunciation=pronunciation,
            hits=existing.hits if existing else 0,
            source_text=source_text,
            target_lang=target_lang,
        ))

    async def read_by_hash(self, key: str) -> Optional[TranslationRecord]:
        return await asyncio.to_thread(self._read, key)

    async def increment_hits(self, key: str) -> None:
        await asyncio.to_thread(self._increment, key)

    async def upsert_by_hash(
        self,
        key: str,
        source_text: str,
        target_lang: str,
        translation: str,
        pronunciation: str,
    ) -> None:
        await asyncio.to_thread(
            self._upsert, key, source_text, target_lang, translation, pronunciation,
        )


class SharedTranslationCache:
    """
    Lookup/store facade over a TranslationStore.

    ``lookup`` bumps the record's hit counter as a side effect. A failing
    counter update is logged and does not affect the returned record.
    """

    def __init__(self, store: TranslationStore):
        self._store = store

    async def lookup(self, source_text: str, target_lang: str) -> Optional[TranslationRecord]:
        """Return the stored translation or None (also on store errors)."""
        key = make_shared_key(source_text, target_lang)
        with timeit("shared_lookup") as t:
            try:
                record = await self._store.read_by_hash(key)
            except Exception as e:
                warn(_LOG, "shared_read_error", key=key[:8], error=str(e))
                return None

        if record is None:
            verbose(_LOG, "shared_miss", key=key[:8])
            return None

        try:
            await self._store.increment_hits(key)
        except Exception as e:
            warn(_LOG, "shared_hit_count_error", key=key[:8], error=str(e))

        info(_LOG, "shared_hit", key=key[:8], hits=record.hits + 1, seconds=round(t.seconds, 4))
        return record

    async def store(
        self,
        source_text: str,
        target_lang: str,
        translation: str,
        pronunciation: str = "",
    ) -> bool:
        """Upsert a translation. Returns False (and logs) if the store failed."""
        key = make_shared_key(source_text, target_lang)
        try:
            await self._store.upsert_by_hash(
                key, normalize_for_key(source_text), target_lang.strip().lower(),
                translation, pronunciation,
            )
        except Exception as e:
            warn(_LOG, "shared_write_error", key=key[:8], error=str(e))
            return False
        verbose(_LOG, "shared_saved", key=key[:8])
        return True
