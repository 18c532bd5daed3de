"""Repository content client: read and write single files via the GitHub REST API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from github import Auth, Github, GithubException

from devpilot.config import settings
from devpilot.errors import RepoClientError, RepoFileNotFoundError, RepoPermissionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteFile:
    """A file as currently stored in the repository."""

    path: str
    content: str
    sha: str


def parse_repo(repo: str) -> tuple[str, str]:
    """Split 'owner/repo' into its parts."""
    parts = repo.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        msg = f"Invalid repo format '{repo}'. Expected 'owner/repo'."
        raise ValueError(msg)
    return parts[0], parts[1]


def _translate(exc: GithubException, action: str, resource: str) -> RepoClientError:
    if exc.status == 404:
        return RepoFileNotFoundError(action, resource)
    if exc.status in (401, 403):
        return RepoPermissionError(action, resource)
    message = exc.data.get("message") if isinstance(exc.data, dict) else None
    return RepoClientError(action, message or str(exc), extra_info={"resource": resource})


class RepoContentClient:
    """Thin async wrapper over PyGithub's contents API."""

    def __init__(self, github: Github | None = None, token: str | None = None) -> None:
        self._github = github
        self._token = token

    def _get_github(self) -> Github:
        if self._github is None:
            token = self._token or settings.github_token
            if not token:
                msg = "GITHUB_TOKEN is not configured."
                raise ValueError(msg)
            self._github = Github(auth=Auth.Token(token))
        return self._github

    async def get_file(self, owner: str, repo: str, path: str, ref: str | None = None) -> RemoteFile:
        """Fetch *path*. Raises RepoFileNotFoundError when it does not exist."""
        resource = f"{owner}/{repo}/{path}"
        gh = self._get_github()
        try:
            r = await asyncio.to_thread(gh.get_repo, f"{owner}/{repo}")
            kwargs: dict = {"path": path}
            if ref:
                kwargs["ref"] = ref
            contents = await asyncio.to_thread(r.get_contents, **kwargs)
        except GithubException as exc:
            raise _translate(exc, "get_file", resource) from exc

        if isinstance(contents, list):
            raise RepoClientError("get_file", "Path is a directory", extra_info={"resource": resource})
        return RemoteFile(
            path=contents.path,
            content=contents.decoded_content.decode("utf-8", errors="replace"),
            sha=contents.sha,
        )

    async def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
        branch: str | None = None,
    ) -> str:
        """Create (no *sha*) or update (with *sha*) a file. Returns the commit URL."""
        resource = f"{owner}/{repo}/{path}"
        gh = self._get_github()
        kwargs: dict = {}
        if branch:
            kwargs["branch"] = branch
        try:
            r = await asyncio.to_thread(gh.get_repo, f"{owner}/{repo}")
            if sha:
                result = await asyncio.to_thread(r.update_file, path, message, content, sha, **kwargs)
            else:
                result = await asyncio.to_thread(r.create_file, path, message, content, **kwargs)
        except GithubException as exc:
            raise _translate(exc, "put_file", resource) from exc

        commit_url = result["commit"].html_url
        logger.info("Committed %s: %s", resource, commit_url)
        return commit_url
