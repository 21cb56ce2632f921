from sqlalchemy import Boolean, Column, Integer, String, TIMESTAMP
from sqlalchemy.sql import func
from app.db import Base


class Voucher(Base):
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True, autoincrement=True)

    code = Column(String(32), nullable=False, unique=True)

    # currency units
    initial_value = Column(Integer, nullable=False)
    current_balance = Column(Integer, nullable=False)

    issued_to = Column(Integer, nullable=False, index=True)

    is_active = Column(Boolean, nullable=False, default=True)

    # NULL = no expiry
    expiry_date = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
    last_used = Column(TIMESTAMP, nullable=True)
