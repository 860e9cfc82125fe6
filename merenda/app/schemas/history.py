from datetime import datetime

from pydantic import BaseModel, ConfigDict

from merenda.app.schemas.notification import Pagination


class HistoryRead(BaseModel):
    id: int
    product_id: int | None
    product_name_snapshot: str
    action: str
    detail: str | None
    username_snapshot: str | None
    occurred_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HistoryPage(BaseModel):
    items: list[HistoryRead]
    pagination: Pagination
