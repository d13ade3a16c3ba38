from .auth import AuthMiddleware
from .request_id import RequestIDMiddleware

__all__ = ["AuthMiddleware", "RequestIDMiddleware"]
