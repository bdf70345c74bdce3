"""
Base schema classes
"""
from pydantic import BaseModel as PydanticBaseModel
from pydantic.alias_generators import to_camel
from datetime import datetime


class BaseSchema(PydanticBaseModel):
    """Base schema with common configuration"""

    class Config:
        from_attributes = True  # Allows ORM mode (formerly orm_mode)
        populate_by_name = True


class CamelSchema(BaseSchema):
    """
    Schema exchanged with the dashboard: camelCase on the wire,
    snake_case in Python and in stored documents.
    """

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


class TimestampSchema(CamelSchema):
    """Schema with timestamp fields"""
    created_at: datetime
    updated_at: datetime


class IDSchema(CamelSchema):
    """Schema with ID field"""
    id: str


class BaseResponseSchema(TimestampSchema, IDSchema):
    """Base response schema with common fields"""
    pass
