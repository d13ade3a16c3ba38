from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from schooldesk.core.logging import logger


class BaseAPIError(Exception):
    """Base exception class for API errors"""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(BaseAPIError):
    """Base class for authentication-related errors"""
    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: str = "AUTH_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = status.HTTP_401_UNAUTHORIZED
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )


class TokenError(AuthenticationError):
    """Raised when the bearer token is missing, malformed, expired or forged"""
    NO_TOKEN = "NO_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"

    def __init__(
        self,
        message: str = "Not authorized, invalid token",
        error_code: str = INVALID_TOKEN,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details
        )

    @classmethod
    def missing(cls) -> "TokenError":
        return cls("Not authorized, no token", error_code=cls.NO_TOKEN)


class InvalidCredentialsException(AuthenticationError):
    """Raised when user credentials are invalid"""
    def __init__(
        self,
        message: str = "Invalid credentials",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="INVALID_CREDENTIALS",
            details=details
        )


class AccountDeactivatedException(AuthenticationError):
    """Raised when a correct login targets a deactivated account"""
    def __init__(
        self,
        message: str = "Account is deactivated",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="ACCOUNT_DEACTIVATED",
            details=details,
            status_code=status.HTTP_403_FORBIDDEN
        )


class AuthorizationError(BaseAPIError):
    """Base class for role, permission and feature rejections"""
    def __init__(
        self,
        message: str = "Operation not permitted",
        error_code: str = "FORBIDDEN",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=error_code,
            details=details
        )


class PermissionDenied(AuthorizationError):
    """Raised when user doesn't have required permissions"""
    def __init__(
        self,
        message: str = "Permission denied",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="PERMISSION_DENIED",
            details=details
        )


class FeatureNotEnabledError(AuthorizationError):
    """Raised when the tenant's plan does not include a feature"""
    def __init__(self, feature: str):
        super().__init__(
            message=(
                f"Feature '{feature}' is not enabled for your school. "
                "Please upgrade your subscription."
            ),
            error_code="FEATURE_NOT_ENABLED",
            details={"feature": feature, "upgrade_required": True}
        )
        self.feature = feature


class SubscriptionInactiveError(AuthorizationError):
    """Raised when the caller's school subscription is not valid"""
    def __init__(
        self,
        message: str = "School subscription is inactive. Please contact administrator to renew.",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="SUBSCRIPTION_INACTIVE",
            details=details
        )


class ValidationError(BaseAPIError):
    """Raised when input validation fails"""
    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_ERROR",
            details=details
        )


class NotFoundError(BaseAPIError):
    """Raised when a requested resource is not found"""
    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details=details
        )


class ConflictError(BaseAPIError):
    """Raised when a create would duplicate an existing resource"""
    def __init__(
        self,
        message: str = "Resource already exists",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONFLICT",
            details=details
        )


def get_error_message(error: BaseAPIError) -> Dict[str, Any]:
    """Flatten an API error into the response body."""
    body: Dict[str, Any] = {
        "success": False,
        "error_code": error.error_code,
        "message": error.message,
    }
    body.update(error.details)
    return body


async def api_error_handler(request: Request, exc: BaseAPIError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"{exc.error_code}: {exc.message}",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "error_code": exc.error_code
        }
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=get_error_message(exc),
        headers=headers
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {str(exc)}",
        exc_info=exc,
        extra={"request_id": getattr(request.state, "request_id", None)}
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error_code": "INTERNAL_ERROR",
            "message": "Internal server error"
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIError, api_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
