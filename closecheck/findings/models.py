# Report models: where a leaked handle was created and what must be deferred.

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class Location(BaseModel):
    """Position of the allocating call (for tuple results, the tuple call)."""

    path: Path
    line: int = Field(..., ge=1)
    column: int = Field(..., ge=1, description="1-based byte column")
    snippet: Optional[str] = Field(None, description="Source line of the call")

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.column}"


class Finding(BaseModel):
    rule_id: str
    resource_name: str = Field(..., description="e.g. ReadOnlyTransaction")
    message: str
    location: Location
    severity: str = "error"

    model_config = {"frozen": True}

    def sort_key(self) -> tuple[str, int, int]:
        return (str(self.location.path), self.location.line, self.location.column)
