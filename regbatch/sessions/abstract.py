"""
Cookie-store strategies for submission attempts.

A submission attempt fetches the session page and posts the form with the same
client, so the endpoint sees the cookies that were issued alongside the token.
Strategies decide whether that client (and its cookie jar) is private to one
attempt or shared by every attempt in the process, and whether an acquired
session (token plus captcha) is used once or kept until the endpoint expires it.
"""

from __future__ import annotations

import abc
from typing import AsyncContextManager, Awaitable, Callable, Protocol, runtime_checkable

import httpx

from regbatch.domain.models import Session

AcquireFn = Callable[[httpx.AsyncClient], Awaitable[Session]]


@runtime_checkable
class ClientStrategy(Protocol):
    """
    Common interface all session modes must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier (the `SESSION_MODE` value).
    description : str
        A human-friendly summary of the cookie policy.
    """

    name: str
    description: str

    def client(self) -> AsyncContextManager[httpx.AsyncClient]:
        """Yield the client one submission attempt should use end to end."""
        ...

    async def session(self, client: httpx.AsyncClient, acquire: AcquireFn) -> Session:
        """Session the attempt should post with; `acquire` fetches a new one."""
        ...

    def discard(self, session: Session) -> None:
        """Forget `session` after the endpoint reported it expired."""
        ...

    async def aclose(self) -> None:
        """Release any client the strategy keeps between attempts."""
        ...


class AbstractClientStrategy(abc.ABC):
    """
    Optional ABC helper for class-based implementations.

    Subclasses should set `name` and `description` and implement `client`.
    """

    name: str
    description: str

    @abc.abstractmethod
    def client(self) -> AsyncContextManager[httpx.AsyncClient]:  # pragma: no cover
        """Yield a client for one attempt."""
        raise NotImplementedError

    async def session(self, client: httpx.AsyncClient, acquire: AcquireFn) -> Session:
        return await acquire(client)

    def discard(self, session: Session) -> None:
        return None

    async def aclose(self) -> None:
        return None


__all__ = ["AbstractClientStrategy", "AcquireFn", "ClientStrategy"]
