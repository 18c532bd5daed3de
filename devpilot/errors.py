"""Exception hierarchy shared by the store, providers, and apply targets."""

from __future__ import annotations

ExtraInfoType = dict[str, str | None]


class DevpilotError(Exception):
    """Base class for every error raised by devpilot."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None) -> None:
        msg = message
        if extra_info:
            details = ", ".join(f"{key}: {value}" for key, value in extra_info.items() if value is not None)
            if details:
                msg += f" ({details})"
        super().__init__(msg)
        self.extra_info = extra_info or {}


# -- Completion provider -------------------------------------------------------


class ProviderError(DevpilotError):
    """The completion provider could not produce a response."""


class TransientProviderError(ProviderError):
    """Network failure, timeout, rate limit, or non-2xx reply. Retryable by the caller."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(
            f"Completion provider '{provider}' failed: {message}",
            extra_info={"status": str(status_code) if status_code is not None else None},
        )
        self.provider = provider
        self.status_code = status_code


class ProviderNotConfiguredError(ProviderError):
    """No API key is configured for the completion provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Completion provider '{provider}' is not configured")
        self.provider = provider


# -- Storage -------------------------------------------------------------------


class MalformedPersistedState(DevpilotError):
    """The on-disk memory document could not be decoded."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__("Memory document is malformed", extra_info={"path": path, "reason": reason})
        self.path = path


class LockTimeout(DevpilotError):
    """A file lock was held past the stale ceiling and was reclaimed."""

    def __init__(self, path: str, held_for: float, owner: str | None = None) -> None:
        super().__init__(
            "Stale lock reclaimed",
            extra_info={"path": path, "held_for": f"{held_for:.1f}s", "owner": owner},
        )
        self.path = path
        self.held_for = held_for


# -- Writes --------------------------------------------------------------------


class WriteFailure(DevpilotError):
    """Writing an extracted file to disk or to a repository failed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to write {path}", extra_info={"reason": reason})
        self.path = path
        self.reason = reason


# -- Repository content client -------------------------------------------------


class RepoClientError(DevpilotError):
    """A request to the source-control content API failed."""

    def __init__(self, action: str, message: str | None = None, extra_info: ExtraInfoType | None = None) -> None:
        super().__init__(
            "A repository request failed",
            extra_info={"action": action, "message": message, **(extra_info or {})},
        )
        self.action = action


class RepoFileNotFoundError(RepoClientError):
    """The repository or file does not exist."""

    def __init__(self, action: str, resource: str | None = None) -> None:
        super().__init__(action, "The resource could not be found.", extra_info={"resource": resource})
        self.resource = resource


class RepoPermissionError(RepoClientError):
    """The token is missing or lacks access to the repository."""

    def __init__(self, action: str, resource: str | None = None) -> None:
        super().__init__(action, "Permission denied.", extra_info={"resource": resource})
        self.resource = resource
