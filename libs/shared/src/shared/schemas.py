from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error body shared by every route; mirrors the ``success``/``message`` shape of auth results."""

    success: bool = False
    message: str
    detail: str | None = None
    request_id: str | None = None
