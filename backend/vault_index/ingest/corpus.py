"""Read access to the indexed vault."""

from __future__ import annotations

import asyncio
import fnmatch
from pathlib import Path, PurePosixPath
from typing import Any, Protocol, Sequence

import yaml

from vault_index.core.logging import get_logger
from vault_index.ingest.types import Document
from vault_index.utils.text import inline_tags
from vault_index.utils.time import to_ms

logger = get_logger(__name__)


class DocumentSource(Protocol):
    async def list_documents(self) -> list[str]: ...

    async def read(self, path: str) -> Document | None: ...


class FileSystemCorpus:
    """Markdown files under ``root``, addressed by vault-relative POSIX paths."""

    def __init__(
        self,
        root: Path,
        include_glob: str = "*.md",
        exclude_paths: Sequence[str] | None = None,
    ) -> None:
        self.root = root.expanduser().resolve()
        self.include_glob = include_glob
        self.exclude_paths = [_normalize_prefix(prefix) for prefix in exclude_paths or [] if prefix]

    def is_indexable(self, path: str) -> bool:
        relative = PurePosixPath(path)
        if not fnmatch.fnmatch(relative.name, self.include_glob):
            return False
        posix = relative.as_posix()
        return not any(posix == prefix or posix.startswith(prefix + "/") for prefix in self.exclude_paths)

    def relative_path(self, absolute: Path) -> str | None:
        try:
            return absolute.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None

    def resolve(self, path: str) -> Path:
        return self.root / PurePosixPath(path)

    async def list_documents(self) -> list[str]:
        return await asyncio.to_thread(self._list_documents)

    async def read(self, path: str) -> Document | None:
        return await asyncio.to_thread(self._read, path)

    def _list_documents(self) -> list[str]:
        if not self.root.is_dir():
            logger.warning("Vault root %s does not exist", self.root)
            return []
        documents: list[str] = []
        for candidate in sorted(self.root.rglob(self.include_glob)):
            if not candidate.is_file():
                continue
            relative = self.relative_path(candidate)
            if relative is not None and self.is_indexable(relative):
                documents.append(relative)
        return documents

    def _read(self, path: str) -> Document | None:
        absolute = self.resolve(path)
        try:
            stat = absolute.stat()
            raw = absolute.read_bytes()
        except FileNotFoundError:
            return None
        text = raw.decode("utf-8", errors="replace")
        front_matter = _front_matter(text)
        title = front_matter.get("title") if front_matter else None
        return Document(
            path=path,
            text=text,
            title=str(title) if title else PurePosixPath(path).stem,
            tags=_merge_tags(_front_matter_tags(front_matter), inline_tags(text)),
            size=len(raw),
            mtime=to_ms(stat.st_mtime),
        )


def _normalize_prefix(prefix: str) -> str:
    return PurePosixPath(prefix.replace("\\", "/")).as_posix().strip("/")


def _front_matter(text: str) -> dict[str, Any] | None:
    if text.startswith("---"):
        parts = text.split("---", 2)
        if len(parts) >= 3:
            try:
                front_matter = yaml.safe_load(parts[1]) or {}
            except yaml.YAMLError:
                return None
            if isinstance(front_matter, dict):
                return front_matter
    return None


def _front_matter_tags(front_matter: dict[str, Any] | None) -> list[str]:
    if not front_matter:
        return []
    value = front_matter.get("tags")
    if value is None:
        return []
    if isinstance(value, str):
        value = value.replace(",", " ").split()
    if not isinstance(value, (list, tuple)):
        return []
    return [str(tag).lstrip("#") for tag in value if str(tag).strip()]


def _merge_tags(*groups: Sequence[str]) -> list[str]:
    merged: list[str] = []
    for group in groups:
        for tag in group:
            if tag not in merged:
                merged.append(tag)
    return merged


__all__ = ["DocumentSource", "FileSystemCorpus"]
