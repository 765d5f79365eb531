from pydantic import BaseModel
from typing import Optional, Any, List


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    details: Optional[Any] = None


class MessageResponse(BaseModel):
    """
    Plain acknowledgement with a human-readable message.
    """
    msg: str
    success: bool = True


class Page(BaseModel):
    """
    Paginated listing envelope.
    """
    total: int
    page: int
    per_page: int
    items: List[Any]
