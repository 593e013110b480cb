"""
Schema loading and the canonical mapping pass.

`map_to_canonical` is total: whatever shape the merged research output has,
the report contains every field the schema declares, filled with the resolved
value or the default for the field's declared type.
"""
from __future__ import annotations

import copy
import json
import logging
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from ..core.errors import ConfigurationError
from ..schemas.report import ReportSchema
from .field_resolver import NOT_FOUND, resolve_with_aliases

logger = logging.getLogger(__name__)

CanonicalReport = Dict[str, Dict[str, Any]]

DEFAULT_SCHEMA_RESOURCE = "report_schema.json"


def default_for_type(field_type: str | None) -> Any:
    """Fresh default value for a declared field type."""
    if field_type in ("string", "text"):
        return ""
    if field_type == "array":
        return []
    if field_type == "object":
        return {}
    return None


def parse_report_schema(raw: Dict[str, Any]) -> ReportSchema:
    try:
        return ReportSchema.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid report schema: {e}") from e


@lru_cache(maxsize=4)
def load_report_schema(path: str | None = None) -> ReportSchema:
    """
    Load the report schema once per process.

    `path` overrides the packaged resource (REPORT_SCHEMA_PATH).
    """
    try:
        if path:
            text = Path(path).read_text(encoding="utf-8")
        else:
            text = (
                resources.files("gtm_intel.resources")
                .joinpath(DEFAULT_SCHEMA_RESOURCE)
                .read_text(encoding="utf-8")
            )
        raw = json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not load report schema: {e}") from e

    schema = parse_report_schema(raw)
    logger.info(
        "Loaded report schema with %d sections and %d field mappings",
        len(schema.sections),
        len(schema.field_mappings),
    )
    return schema


def map_to_canonical(schema: ReportSchema, merged: Any) -> CanonicalReport:
    """
    Build the canonical report for `merged`.

    Fields are resolved against the whole merged value, not per section; a
    field declared in two sections gets the same value in both. Resolved
    values are deep-copied so the report never aliases the input.
    """
    report: CanonicalReport = {}

    for section in schema.sections:
        section_data: Dict[str, Any] = {}
        for field in section.field_names():
            mapping = schema.field_mappings.get(field)
            aliases = mapping.aliases if mapping else ()
            value = resolve_with_aliases(merged, field, aliases)
            if value is NOT_FOUND:
                # Unknown fields (no mapping entry) fall back to None
                section_data[field] = default_for_type(mapping.type if mapping else None)
            else:
                section_data[field] = copy.deepcopy(value)
        report[section.id] = section_data

    return report
