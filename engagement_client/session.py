"""
Client session: who is acting in this client process
"""
from dataclasses import dataclass
from typing import Optional

from .exceptions import AuthenticationRequiredError


@dataclass
class ClientSession:
    """Authenticated actor and bearer token shared by a client's views"""
    actor_id: Optional[int] = None
    token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.actor_id is not None and bool(self.token)

    def require_actor(self) -> int:
        """Return the actor ID or raise AuthenticationRequiredError"""
        if not self.is_authenticated:
            raise AuthenticationRequiredError("Sign in to continue")
        return self.actor_id

    def sign_out(self):
        self.actor_id = None
        self.token = None
