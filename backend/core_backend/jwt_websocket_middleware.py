"""
JWT WebSocket Authentication Middleware for Django Channels.

Browsers cannot set an Authorization header on a WebSocket handshake, so
the access token is taken from the ``token`` query parameter (or an
``Authorization: Bearer`` header for non-browser clients). Tokens are
validated with simplejwt, the same way HTTP requests are.

Connections without a token keep whatever user the session middleware
placed in the scope (AnonymousUser for anonymous tracking clients).
"""
import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


def extract_token(scope):
    query = parse_qs(scope.get("query_string", b"").decode("utf-8"))
    if query.get("token"):
        return query["token"][0]

    headers = dict(scope.get("headers", []))
    authorization = headers.get(b"authorization", b"").decode("utf-8")
    if authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


@database_sync_to_async
def get_user_for_token(raw_token):
    try:
        token = AccessToken(raw_token)
    except TokenError as e:
        logger.warning(f"Invalid JWT token in WebSocket connection: {e}")
        return AnonymousUser()

    user_id = token.get(api_settings.USER_ID_CLAIM)
    if user_id is None:
        logger.warning("JWT payload missing user id claim")
        return AnonymousUser()

    User = get_user_model()
    try:
        return User.objects.get(**{api_settings.USER_ID_FIELD: user_id, "is_active": True})
    except User.DoesNotExist:
        logger.warning(f"User {user_id} from JWT not found")
        return AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    """
    Authenticates WebSocket connections from a JWT access token and stores
    the user in ``scope["user"]``.
    """

    async def __call__(self, scope, receive, send):
        if scope["type"] == "websocket":
            raw_token = extract_token(scope)
            if raw_token:
                scope["user"] = await get_user_for_token(raw_token)
                logger.debug(f"WebSocket authenticated as user_id={getattr(scope['user'], 'pk', None)}")

        return await super().__call__(scope, receive, send)
