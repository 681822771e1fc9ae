from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    created_at: datetime | None
    storage_key: str
    title: str = ""
    total: int
    correct: int
    duration_ms: int | None = None
    # category stats + recorded answers; excluded in list views
    items: dict[str, Any] | None = None
