"""Base Pydantic model for invocation payloads."""

from pydantic import BaseModel as PydanticBaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseModel(PydanticBaseModel):
    """Base model for request and result payloads.

    Fields are snake_case in Python and camelCase on the wire
    (model_dump(by_alias=True)); either spelling is accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        frozen=True,
    )

    def to_api(self) -> dict:
        """Serialize for an API response body."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
