from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Shape of every JSON response under /api."""

    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    messages: List[str] = []
    warnings: List[str] = []


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: str
