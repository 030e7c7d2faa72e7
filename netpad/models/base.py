"""Shared base model for camelCase wire formats."""

from typing import Any

from pydantic import BaseModel, ConfigDict


def _to_camel(string: str) -> str:
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class CamelModel(BaseModel):
    """Model exchanged with the deployments API as camelCase JSON."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    def to_wire(self, **kwargs: Any) -> dict[str, Any]:
        """Dump to the JSON shape the deployments API speaks."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, **kwargs)
