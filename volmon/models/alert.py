from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AlertRecord(Base):
    __tablename__ = "volume_alerts"
    __table_args__ = (Index("ix_volume_alerts_order", "namespace", "batch_no", "batch_pos"),)

    ledger_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    namespace: Mapped[str] = mapped_column(String(64), default="default")
    batch_no: Mapped[int] = mapped_column(Integer)
    batch_pos: Mapped[int] = mapped_column(Integer)

    alert_id: Mapped[int] = mapped_column(Integer)
    option_ticker: Mapped[str] = mapped_column(String(32))
    underlying_ticker: Mapped[str] = mapped_column(String(32))
    snapshot_date: Mapped[date] = mapped_column(Date)
    current_volume: Mapped[int]
    prior_volume: Mapped[int]
    volume_pct_change: Mapped[float] = mapped_column(Float)
    alert_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False)
