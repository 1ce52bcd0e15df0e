"""Bearer token middleware: decodes the identity boundary's JWT onto request.state.user."""

import logging

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from reviewhub.config import settings
from reviewhub.logging_config import bind_request_context

logger = logging.getLogger(__name__)

# Paths that do not require authentication
_PUBLIC_PATHS = {
    "/api/v1/health",
    "/api/v1/health/ready",
    "/docs",
    "/openapi.json",
    "/redoc",
}

ANONYMOUS = {"sub": "anonymous", "email": "", "client_id": None}


def decode_token(token: str) -> dict:
    """Verify signature, audience and issuer of an access token.

    Raises:
        ValueError: if the token is invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        logger.debug("JWT decode failed: %s", exc)
        raise ValueError(f"Invalid token: {exc}") from exc


class AuthMiddleware(BaseHTTPMiddleware):
    """Attach ``{sub, email, client_id}`` to request.state; routes enforce auth."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if path in _PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc"):
            request.state.user = dict(ANONYMOUS)
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            user_info = self._validate(auth_header[7:])
        else:
            user_info = dict(ANONYMOUS)

        request.state.user = user_info
        if user_info.get("sub") not in ("anonymous", ""):
            bind_request_context(
                getattr(request.state, "trace_id", "unknown"),
                user_id=user_info["sub"],
                client_id=user_info.get("client_id"),
            )
        return await call_next(request)

    def _validate(self, token: str) -> dict:
        try:
            payload = decode_token(token)
        except ValueError:
            return {**ANONYMOUS, "_auth_error": "invalid_token"}

        if payload.get("type") == "refresh":
            return {**ANONYMOUS, "_auth_error": "not_access_token"}

        return {
            "sub": payload.get("sub", ""),
            "email": (payload.get("email") or "").strip().lower(),
            "client_id": payload.get("client_id"),
        }
