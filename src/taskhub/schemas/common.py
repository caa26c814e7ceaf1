"""Shared schema base.

Learn: The wire format is camelCase (firstName, dueDate, createdBy) while
Python attributes stay snake_case. The alias generator handles the mapping;
populate_by_name lets request bodies use either spelling.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(ApiModel):
    """Every response body: {"success": ..., "message": ..., ...payload}."""
    success: bool = True
    message: Optional[str] = None
