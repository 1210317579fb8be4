"""Operation result returned to the calling API layer."""

from typing import Any, Optional

from pydantic import BaseModel


class OperationResult(BaseModel):
    """
    ``{success: true, data?: {...generated ids...}}``

    Failures are never returned here; they are raised as LedgerError
    subclasses. There are no partial-success results.
    """

    success: bool = True
    data: Optional[dict[str, Any]] = None

    @classmethod
    def ok(cls, **data: Any) -> "OperationResult":
        return cls(success=True, data=data or None)

    def to_response(self) -> dict:
        return self.model_dump(exclude_none=True)
