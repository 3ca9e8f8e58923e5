"""Ephemeral module URL allocation.

Every transformed module gets exactly one addressable artifact. In ``data``
mode the URL is a self-contained ``data:`` URL; in ``hosted`` mode it is a
path under ``artifact_base_url`` that the host serves with :meth:`read`.

Artifacts are reference-counted by build generation: a generation retains
the artifacts it uses, and releasing a generation frees every artifact no
other generation still retains.
"""

from __future__ import annotations

import asyncio
import base64
import uuid
from dataclasses import dataclass, field

from livepreview.builder.models import ModuleRecord
from livepreview.config import ArtifactMode, PreviewConfig
from livepreview.errors import NotFoundError

__all__ = ["Artifact", "ArtifactMode", "ModuleURLAllocator"]


@dataclass
class Artifact:
    """One live, addressable copy of a module's linked code."""

    url: str
    path: str
    content_hash: str
    code: str
    created_generation: int
    generations: set[int] = field(default_factory=set)
    record: ModuleRecord | None = None


class ModuleURLAllocator:
    """Creates, shares and releases module artifacts."""

    def __init__(self, config: PreviewConfig | None = None):
        self.config = config or PreviewConfig()
        self._artifacts: dict[str, Artifact] = {}
        self._by_generation: dict[int, set[str]] = {}
        self.created = 0
        self.freed = 0

    # -- Queries -------------------------------------------------------------

    @property
    def live_count(self) -> int:
        return len(self._artifacts)

    def live_urls(self) -> list[str]:
        return sorted(self._artifacts)

    def is_live(self, url: str | None) -> bool:
        return url is not None and url in self._artifacts

    def artifact(self, url: str) -> Artifact | None:
        return self._artifacts.get(url)

    def generations_of(self, url: str) -> set[int]:
        artifact = self._artifacts.get(url)
        return set(artifact.generations) if artifact else set()

    def read(self, url: str) -> str:
        """Return the code behind a live artifact URL (for hosted mode).

        Raises:
            NotFoundError: If the artifact has been released or never existed.
        """
        artifact = self._artifacts.get(url)
        if artifact is None:
            raise NotFoundError(f"No live module artifact at {url}", path=url)
        return artifact.code

    # -- Allocation ----------------------------------------------------------

    async def allocate(self, records: list[ModuleRecord], generation: int) -> list[str]:
        """Ensure every record has a live artifact retained by *generation*.

        Records that already carry a live URL share it; the rest get a new
        artifact. Returns the URLs in record order.
        """
        urls: list[str] = []
        for record in records:
            if self.is_live(record.module_url):
                url = record.module_url  # type: ignore[assignment]
            else:
                url = self._create(record, generation)
                record.module_url = url
            self._retain(url, generation)
            urls.append(url)
            # Let other builds make progress between artifacts.
            await asyncio.sleep(0)
        return urls

    def release_generation(self, generation: int) -> list[str]:
        """Drop *generation*'s references; returns the URLs actually freed."""
        freed: list[str] = []
        for url in sorted(self._by_generation.pop(generation, set())):
            artifact = self._artifacts.get(url)
            if artifact is None:
                continue
            artifact.generations.discard(generation)
            if not artifact.generations:
                self._free(artifact)
                freed.append(url)
        return freed

    def release_all(self) -> list[str]:
        freed: list[str] = []
        for generation in sorted(self._by_generation):
            freed.extend(self.release_generation(generation))
        return freed

    # -- Internals -----------------------------------------------------------

    def _create(self, record: ModuleRecord, generation: int) -> str:
        artifact_id = uuid.uuid4().hex[:12]
        code = f"{record.linked_code}\n//# sourceURL=preview://{artifact_id}{record.path}\n"
        if self.config.artifact_mode is ArtifactMode.HOSTED:
            url = f"{self.config.artifact_base_url.rstrip('/')}/{artifact_id}.js"
        else:
            payload = base64.b64encode(code.encode("utf-8")).decode("ascii")
            url = f"data:text/javascript;base64,{payload}"
        self._artifacts[url] = Artifact(
            url=url,
            path=record.path,
            content_hash=record.content_hash,
            code=code,
            created_generation=generation,
            record=record,
        )
        self.created += 1
        return url

    def _retain(self, url: str, generation: int) -> None:
        self._artifacts[url].generations.add(generation)
        self._by_generation.setdefault(generation, set()).add(url)

    def _free(self, artifact: Artifact) -> None:
        del self._artifacts[artifact.url]
        if artifact.record is not None and artifact.record.module_url == artifact.url:
            artifact.record.module_url = None
        self.freed += 1
