# backend/gtm_intel/schemas/report.py
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

FieldType = Literal["string", "text", "array", "object", "number", "boolean"]


class FieldColumn(BaseModel):
    """A column group inside e.g. a two_column_grid subsection."""
    title: str | None = None
    fields: list[str] = []


class Subsection(BaseModel):
    type: str  # presentation kind: two_column_grid | text | list | key_value | cards
    title: str | None = None
    fields: list[str | FieldColumn] = []

    def field_names(self) -> list[str]:
        """Declared field names with column groups flattened, in order."""
        names: list[str] = []
        for entry in self.fields:
            if isinstance(entry, FieldColumn):
                names.extend(entry.fields)
            else:
                names.append(entry)
        return names


class Section(BaseModel):
    id: str
    title: str
    subsections: list[Subsection] = []

    def field_names(self) -> list[str]:
        names: list[str] = []
        for sub in self.subsections:
            names.extend(sub.field_names())
        return names


class FieldMapping(BaseModel):
    type: FieldType | None = None
    aliases: list[str] = []


class ReportSchema(BaseModel):
    """
    Static description of the canonical report.

    `field_mappings` gives each field its declared type (used for defaults)
    and the alias names the resolver falls back to, in order.
    """
    model_config = ConfigDict(frozen=True)

    version: str | None = None
    sections: list[Section]
    field_mappings: dict[str, FieldMapping] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_aliases(self):
        declared = set(self.declared_fields())
        for field, mapping in self.field_mappings.items():
            clashes = [a for a in mapping.aliases if a in declared and a != field]
            if clashes:
                raise ValueError(
                    f"aliases of '{field}' name other declared fields: {clashes}"
                )
        return self

    def declared_fields(self) -> list[str]:
        names: list[str] = []
        for section in self.sections:
            names.extend(section.field_names())
        return names
