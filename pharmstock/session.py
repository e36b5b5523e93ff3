"""
Session scope handed to the inventory engine.

Sign-in, tokens and role handling live outside this package. The engine only
asks a provider for the current SessionState and reads the pharmacy id from it.
"""
from abc import ABC, abstractmethod

from pydantic import BaseModel

from .errors import MESSAGES, SessionError


class SessionState(BaseModel):
    authenticated: bool = False
    user_id: str | None = None
    role: str | None = None
    pharmacy_id: str | None = None
    pharmacy_name: str | None = None


class SessionProvider(ABC):
    @abstractmethod
    def check_session(self) -> SessionState:
        """Returns the current session; called whenever the caller needs fresh scope."""


class StaticSessionProvider(SessionProvider):
    """A provider with a fixed state, for scripts and tests."""

    def __init__(self, state: SessionState):
        self.state = state

    def check_session(self) -> SessionState:
        return self.state


def require_pharmacy(provider: SessionProvider) -> str:
    state = provider.check_session()
    if not state.authenticated or not state.pharmacy_id:
        raise SessionError(MESSAGES["no_pharmacy"])
    return state.pharmacy_id
