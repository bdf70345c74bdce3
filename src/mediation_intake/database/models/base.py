"""
Base model class for all database models
"""
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

from mediation_intake.utils.helpers import utcnow

Base = declarative_base()


def generate_id() -> str:
    """Opaque document id, Firestore-style"""
    return uuid.uuid4().hex


class BaseModel(Base):
    """
    Abstract base model with common fields.
    All database models should inherit from this.
    """
    __abstract__ = True

    id = Column(String(32), primary_key=True, default=generate_id, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
