"""
Request identity resolution.

A request can prove who it is with a bearer JWT or with the signed session
cookie written at login. Each mechanism is an ``IdentityResolver``; the API
depends on a single ``ChainedIdentityResolver`` that tries them in order.
"""

import abc
import logging
from typing import Iterable, List, Optional

from starlette.requests import Request

from tix.core.security import decode_access_token

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"


class IdentityResolver(abc.ABC):
    @abc.abstractmethod
    async def resolve_user_id(self, request: Request) -> Optional[str]:
        """Return the authenticated user id, or None if this resolver has no opinion."""


class BearerTokenResolver(IdentityResolver):
    async def resolve_user_id(self, request: Request) -> Optional[str]:
        authorization = request.headers.get("Authorization")
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        payload = decode_access_token(token.strip())
        if payload is None or not payload.sub:
            logger.debug("Rejected bearer token on %s", request.url.path)
            return None
        return payload.sub


class SessionResolver(IdentityResolver):
    async def resolve_user_id(self, request: Request) -> Optional[str]:
        if "session" not in request.scope:
            return None
        user_id = request.session.get(SESSION_USER_KEY)
        return str(user_id) if user_id else None


class ChainedIdentityResolver(IdentityResolver):
    def __init__(self, resolvers: Iterable[IdentityResolver]) -> None:
        self.resolvers: List[IdentityResolver] = list(resolvers)

    async def resolve_user_id(self, request: Request) -> Optional[str]:
        for resolver in self.resolvers:
            user_id = await resolver.resolve_user_id(request)
            if user_id:
                return user_id
        return None


def start_session(request: Request, user_id: str) -> None:
    request.session[SESSION_USER_KEY] = user_id


def end_session(request: Request) -> None:
    request.session.clear()


default_resolver = ChainedIdentityResolver([BearerTokenResolver(), SessionResolver()])
