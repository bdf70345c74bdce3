"""
Base service class for common service functionality
"""
from sqlalchemy.orm import Session
from typing import Generic, TypeVar, Type, Optional

from mediation_intake.database.models.base import BaseModel
from mediation_intake.utils.exceptions import NotFoundError
from mediation_intake.utils.helpers import utcnow

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseService(Generic[ModelType]):
    """
    Base service class with common record operations.
    Records are never deleted; updates are whole-row merges.
    """

    resource_name = "Record"

    def __init__(self, db: Session, model: Type[ModelType]):
        self.db = db
        self.model = model

    def get(self, id: str) -> Optional[ModelType]:
        """Get a single record by ID"""
        return self.db.query(self.model).filter(self.model.id == id).first()

    def get_or_404(self, id: str) -> ModelType:
        db_obj = self.get(id)
        if db_obj is None:
            raise NotFoundError(f"{self.resource_name} '{id}' not found")
        return db_obj

    def create(self, **kwargs) -> ModelType:
        """Create a new record"""
        db_obj = self.model(**kwargs)
        self.db.add(db_obj)
        self.db.commit()
        self.db.refresh(db_obj)
        return db_obj

    def save(self, db_obj: ModelType, **fields) -> ModelType:
        """Merge fields into a loaded record and commit"""
        for key, value in fields.items():
            setattr(db_obj, key, value)
        db_obj.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(db_obj)
        return db_obj
