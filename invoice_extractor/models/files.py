from datetime import datetime
from typing import Literal
from .invoice import CamelModel


class StoredFile(CamelModel):
    id: str
    filename: str
    length: int
    content_type: Literal["application/pdf"] = "application/pdf"
    uploaded_at: datetime
