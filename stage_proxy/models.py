"""SQLAlchemy async models."""
from sqlalchemy import Column, String, Text, JSON, DateTime
from stage_proxy.db import Base


class Option(Base):
    """Persisted setting (sfp_url, sfp_mode, sfp_local_dir)."""
    __tablename__ = "options"

    name = Column(String(191), primary_key=True)
    value = Column(Text, nullable=False, default="")


class Transient(Base):
    """Cached value with an expiry; a missing or expired row is a normal cache miss."""
    __tablename__ = "transients"

    name = Column(String(191), primary_key=True)
    value = Column(JSON, nullable=False)
    expires_at = Column(DateTime, nullable=True, index=True)  # naive UTC, NULL = no expiry
