"""
Base model shared by all schemas.

The storefront UI speaks camelCase JSON. Models accept either spelling on
input and serialize with camelCase aliases.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """BaseModel with camelCase aliases and snake_case attribute names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )
