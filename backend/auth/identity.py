"""Caller identity resolution.

Tokens are verified upstream by the authenticating gateway, which forwards
the caller's user id in a request header. This module only turns that id
into a ``CallerIdentity`` carrying the role stored for the user.
"""
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from ..common.config import settings
from ..common.database import Database
from ..users.model import Role, User

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    role: str = Role.CLIENT.value

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


class IdentityError(Exception):
    """The caller could not be identified."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class HeaderIdentityProvider:
    def __init__(self, database: Database, header: Optional[str] = None):
        self.database = database
        self.header = header or settings.IDENTITY_HEADER

    async def resolve(self, headers: Mapping[str, str]) -> CallerIdentity:
        user_id = (headers.get(self.header) or "").strip()
        if not user_id:
            raise IdentityError(f"Usuário não autenticado. Envie o cabeçalho {self.header}")
        async with self.database.session_factory() as session:
            user = await session.get(User, user_id)
        if user is None:
            _logger.info("Unknown caller rejected | user_id=%s", user_id)
            raise IdentityError("Usuário não encontrado para as credenciais informadas")
        return CallerIdentity(user_id=user.id, role=user.role)
