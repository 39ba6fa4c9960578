from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request bodies use the public camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def list_envelope(documents: list[dict[str, Any]]) -> dict[str, Any]:
    return {"status": "success", "results": len(documents), "data": {"data": documents}}


def document_envelope(document: dict[str, Any]) -> dict[str, Any]:
    return {"status": "success", "data": {"data": document}}
