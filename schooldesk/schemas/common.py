from typing import Any, Dict, Optional

from pydantic import BaseModel


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error_code: str
    message: str
