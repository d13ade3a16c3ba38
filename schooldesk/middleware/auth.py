# middleware/auth.py
from typing import Iterable, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from schooldesk.core.errors import TokenError, get_error_message
from schooldesk.core.logging import logger
from schooldesk.core.security import decode_access_token, extract_bearer_token

API_PREFIX = "/api/v1"

PUBLIC_PATHS = {
    f"{API_PREFIX}/auth/login",
    f"{API_PREFIX}/super-admin/login",
    f"{API_PREFIX}/super-admin/register",
    "/api/health",
    "/api/docs",
    "/api/redoc",
    "/openapi.json",
}


class AuthMiddleware(BaseHTTPMiddleware):
    """Verifies the bearer token on every protected API path"""

    def __init__(self, app, exclude_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.exclude_paths = set(PUBLIC_PATHS)
        if exclude_paths:
            self.exclude_paths.update(exclude_paths)

    def _is_protected(self, request: Request) -> bool:
        if request.method == "OPTIONS":
            return False
        path = request.url.path.rstrip("/") or "/"
        if path in self.exclude_paths:
            return False
        return path.startswith(API_PREFIX)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        if not self._is_protected(request):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("Authorization"))
        try:
            request.state.caller = decode_access_token(token)
        except TokenError as auth_err:
            logger.warning(
                f"Authentication failed on {request.url.path}: {auth_err.message}",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "error_code": auth_err.error_code
                }
            )
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content=get_error_message(auth_err),
                headers={"WWW-Authenticate": "Bearer"}
            )

        return await call_next(request)
