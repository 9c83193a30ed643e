from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base


Base = declarative_base()


class EngineRecord(Base):
    __tablename__ = "engine_kv"

    key = Column(String, primary_key=True)  # e.g., "prediction_state_v2"
    value = Column(Text, nullable=False)  # serialized JSON record
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
