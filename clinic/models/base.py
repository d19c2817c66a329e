"""Shared base for records persisted as JSON documents."""

from collections.abc import Mapping
from typing import Any, Self

from pydantic import BaseModel, ConfigDict


class StoredRecord(BaseModel):
    """Immutable record read from and written to a storage document.

    Attribute names are snake_case; the stored documents keep the original
    camelCase keys through field aliases. Keys this model does not know about
    are kept so documents written by newer versions survive a round trip.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Self:
        """Build a record from a stored document."""
        return cls.model_validate(dict(document))

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-ready document; unset optional fields are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def normalize_fields(cls, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Map document keys in ``fields`` to attribute names."""
        aliases = {info.alias: name for name, info in cls.model_fields.items() if info.alias}
        return {aliases.get(key, key): value for key, value in fields.items()}

    def merged(self, partial: Mapping[str, Any], *, protected: tuple[str, ...] = ("id",)) -> Self:
        """Return a copy with ``partial`` shallow-merged over this record.

        Fields named in ``protected`` keep their current values. The result is
        validated, so an invalid value raises before anything is replaced.
        """
        updates = {key: value for key, value in self.normalize_fields(partial).items() if key not in protected}
        return type(self).model_validate({**self.model_dump(), **updates})


def blank_to_none(value: Any) -> Any:
    """Treat empty form values as "not set"."""
    if isinstance(value, str) and not value.strip():
        return None
    return value
