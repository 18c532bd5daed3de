"""Apply extracted files to a local directory or a GitHub repository."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from devpilot.config import settings
from devpilot.errors import RepoClientError, RepoFileNotFoundError, WriteFailure
from devpilot.fileio import atomic_write_text
from devpilot.integrations.github_content import parse_repo

if TYPE_CHECKING:
    from collections.abc import Iterable

    from devpilot.extraction.models import ExtractedFile
    from devpilot.integrations.github_content import RepoContentClient

logger = logging.getLogger(__name__)


class ApplyTarget(Protocol):
    """Somewhere extracted files can be written. Writes replace whole files."""

    async def write(self, file: ExtractedFile) -> str:
        """Write *file*; return where it landed. Raises WriteFailure."""
        ...


@dataclass
class ApplyResult:
    """Which files were written and which failed (with the reason)."""

    written: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return bool(self.written)


class LocalFileTarget:
    """Writes files under a root directory, refusing paths that escape it."""

    def __init__(self, root: Path | None = None) -> None:
        self._root = Path(root or settings.workspace_dir).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if not target.is_relative_to(self._root):
            raise WriteFailure(path, "path escapes the workspace")
        return target

    async def write(self, file: ExtractedFile) -> str:
        target = self.resolve(file.path)
        try:
            await asyncio.to_thread(atomic_write_text, target, file.content)
        except OSError as exc:
            raise WriteFailure(file.path, str(exc)) from exc
        return str(target)


class GitHubTarget:
    """Commits each file to a repository, creating or updating as needed."""

    def __init__(
        self,
        client: RepoContentClient,
        repo: str,
        branch: str | None = None,
        message: str = "Apply AI-suggested fix",
    ) -> None:
        self._client = client
        self._owner, self._repo = parse_repo(repo)
        self.branch = branch
        self.message = message

    async def write(self, file: ExtractedFile) -> str:
        try:
            sha = None
            try:
                existing = await self._client.get_file(self._owner, self._repo, file.path, ref=self.branch)
                sha = existing.sha
            except RepoFileNotFoundError:
                logger.debug("%s does not exist yet; creating it", file.path)
            return await self._client.put_file(
                self._owner,
                self._repo,
                file.path,
                file.content,
                f"{self.message}: {file.path}",
                sha=sha,
                branch=self.branch,
            )
        except (RepoClientError, ValueError) as exc:
            raise WriteFailure(file.path, str(exc)) from exc


async def apply_files(files: Iterable[ExtractedFile], target: ApplyTarget) -> ApplyResult:
    """Write every file independently, collecting successes and failures."""
    result = ApplyResult()
    for file in files:
        try:
            location = await target.write(file)
        except WriteFailure as exc:
            logger.warning("Could not apply %s: %s", exc.path, exc.reason)
            result.failed.append((exc.path, exc.reason))
            continue
        logger.info("Applied %s (%s) -> %s", file.path, file.origin, location)
        result.written.append(file.path)
    return result
