"""Shared schema configuration."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Schema exchanged with the web client in camelCase.

    Accepts both camelCase and snake_case keys on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TimelineStep(CamelModel):
    """One step of a booking or order status timeline."""

    status: str
    label: str
    timestamp: datetime | None = None
    completed: bool
