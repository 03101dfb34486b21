"""Shared schema base — camelCase on the wire and in stored documents."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    def to_document(self) -> dict:
        """JSON-safe dict with wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)
