"""
Sessions package: cookie-store modes and session acquisition.

This module re-exports the abstract interface, the concrete session modes and
the acquisition helpers so downstream code can import from `regbatch.sessions`
directly.
"""

from regbatch.sessions.abstract import AbstractClientStrategy, ClientStrategy
from regbatch.sessions.acquirer import acquire_session, reload_captcha
from regbatch.sessions.fresh import FreshClientStrategy
from regbatch.sessions.shared import SharedClientStrategy

__all__ = [
    # Abstracts
    "AbstractClientStrategy",
    "ClientStrategy",
    # Concrete modes
    "FreshClientStrategy",
    "SharedClientStrategy",
    # Acquisition
    "acquire_session",
    "reload_captcha",
]
