"""Per-file memo of transform results.

Entries are keyed by ``(path, content_hash)`` and only the latest hash per
path is retained. Failures are cached like successes, so an unedited broken
file is not re-transformed on every build. Concurrent requests for the same
key share a single transform.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from livepreview.builder.transpiler import PassthroughTranspiler, Transpiler, transform_json
from livepreview.errors import Diagnostic, TranspileError
from livepreview.utils import content_hash as compute_hash
from livepreview.vfs.paths import extension_of


@dataclass(frozen=True)
class TranspileResult:
    """Outcome of transforming one file at one content hash."""

    path: str
    content_hash: str
    code: str = ""
    error: Optional[TranspileError] = None
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None


class TranspileCache:
    """Memoises transforms by ``(path, content_hash)``."""

    def __init__(self, transpiler: Transpiler | None = None):
        self.transpiler: Transpiler = transpiler or PassthroughTranspiler()
        self._entries: dict[str, TranspileResult] = {}
        self._pending: dict[tuple[str, str], asyncio.Future[TranspileResult]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: tuple[str, str]) -> bool:
        path, digest = key
        entry = self._entries.get(path)
        return entry is not None and entry.content_hash == digest

    def lookup(self, path: str, digest: str) -> TranspileResult | None:
        """Return the cached result for ``(path, digest)`` without transforming."""
        entry = self._entries.get(path)
        if entry is not None and entry.content_hash == digest:
            return entry
        return None

    async def get(self, path: str, source: str, digest: str | None = None) -> TranspileResult:
        """Return the transform of *source*, running the backend only on a miss."""
        digest = digest or compute_hash(source)
        cached = self.lookup(path, digest)
        if cached is not None:
            self.hits += 1
            return cached

        key = (path, digest)
        pending = self._pending.get(key)
        if pending is not None:
            self.hits += 1
            return await asyncio.shield(pending)

        self.misses += 1
        future: asyncio.Future[TranspileResult] = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            result = await self._transform(path, source, digest)
            self._entries[path] = result
            future.set_result(result)
            return result
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unobserved failure does not warn.
            future.exception()
            raise
        finally:
            self._pending.pop(key, None)

    def discard(self, path: str) -> bool:
        """Forget the entry for *path* (e.g. after delete or rename)."""
        return self._entries.pop(path, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    async def _transform(self, path: str, source: str, digest: str) -> TranspileResult:
        try:
            if extension_of(path) == ".json":
                code = transform_json(path, source)
            else:
                code = await self.transpiler.transform(path, source)
        except TranspileError as exc:
            if not exc.path:
                exc.path = path
            return TranspileResult(
                path=path,
                content_hash=digest,
                error=exc,
                diagnostics=(exc.to_diagnostic(),),
            )
        return TranspileResult(path=path, content_hash=digest, code=code)
