"""Tracking context management using contextvars.

Every log line emitted while a request is served or while a viewing is
active carries the identifiers of that scope (request id, user, content
item, viewing) without passing them down the call stack explicitly.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
content_id_var: ContextVar[str | None] = ContextVar("content_id", default=None)
viewing_id_var: ContextVar[str | None] = ContextVar("viewing_id", default=None)


def generate_id() -> str:
    """Generate a new unique identifier."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_content_id() -> str | None:
    """Get the content item being viewed."""
    return content_id_var.get()


def get_viewing_id() -> str | None:
    """Get the current viewing ID."""
    return viewing_id_var.get()


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    content_id = get_content_id()
    if content_id:
        context["content_id"] = content_id

    viewing_id = get_viewing_id()
    if viewing_id:
        context["viewing_id"] = viewing_id

    return context


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent context leakage.
    """
    request_id_var.set("")
    user_id_var.set(None)
    content_id_var.set(None)
    viewing_id_var.set(None)


class ViewingContext:
    """Context manager binding a viewing's identifiers.

    Usage:
        with ViewingContext(user_id=..., content_id=..., viewing_id=...):
            log.info("progress_persisted")  # carries user/content/viewing ids
    """

    def __init__(
        self,
        user_id: str | UUID | None = None,
        content_id: str | UUID | None = None,
        viewing_id: str | None = None,
    ) -> None:
        self.user_id = user_id
        self.content_id = content_id
        self.viewing_id = viewing_id
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> "ViewingContext":
        if self.user_id is not None:
            self._tokens.append((user_id_var, user_id_var.set(str(self.user_id))))
        if self.content_id is not None:
            self._tokens.append(
                (content_id_var, content_id_var.set(str(self.content_id)))
            )
        if self.viewing_id is not None:
            self._tokens.append((viewing_id_var, viewing_id_var.set(self.viewing_id)))
        return self

    def __exit__(self, *_: object) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
