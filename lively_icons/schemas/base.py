"""
Base schemas for the public API.

The web client speaks camelCase JSON; models keep snake_case attributes and
expose camelCase aliases. ``from_attributes`` lets routes validate ORM rows
directly.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Response DTO base: camelCase aliases, readable from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CamelRequestModel(CamelModel):
    """Request DTO base; accepts camelCase (or snake_case) keys and ignores unknown ones."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )


class SuccessResponse(CamelModel):
    success: bool = True
