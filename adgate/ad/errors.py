from __future__ import annotations

from typing import Any


class DirectoryError(Exception):
    """Base class for directory-side failures.

    The message is meant for logs only: it carries the ldap3 error text and the
    server ``result`` description. HTTP responses never echo it.
    """

    op = "directory"

    def __init__(self, message: str, *, cause: BaseException | None = None, timeout: bool = False) -> None:
        super().__init__(message)
        self.cause = cause
        self.timeout = timeout

    @classmethod
    def from_result(cls, message: str, result: dict[str, Any] | None) -> "DirectoryError":
        res = dict(result or {})
        desc = res.get("description", "") or "unknown error"
        extra = res.get("message", "")
        text = f"{message}: {desc}"
        if extra and extra != desc:
            text += f" ({extra})"
        return cls(text)


class DirectoryConnectionError(DirectoryError):
    op = "connect"


class BindError(DirectoryError):
    op = "bind"


class SearchError(DirectoryError):
    op = "search"


class AddError(DirectoryError):
    op = "add"


class PasswordSetError(DirectoryError):
    op = "set_password"


class EnableError(DirectoryError):
    op = "enable"


class NotFoundError(DirectoryError):
    op = "lookup"
