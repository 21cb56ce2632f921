from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class VoucherOut(BaseModel):
    id: int
    code: str

    initial_value: int
    current_balance: int

    issued_to: int
    is_active: bool

    expiry_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    last_used: Optional[datetime] = None

    class Config:
        from_attributes = True
