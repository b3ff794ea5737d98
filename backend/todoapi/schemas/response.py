"""Generic API response schemas"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel


class MessageResponse(BaseModel):
    """Generic API success response"""
    success: bool = True
    message: str


def error_payload(message: str, path: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Body shared by every error response"""
    return {
        "success": False,
        "error": message,
        "details": details or {},
        "path": path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
