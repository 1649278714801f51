"""
eHN value sets — display names for coded certificate fields.

Value-set files are published alongside the DCC schema
(`ehn-dcc-valuesets/*.json`):

    {
      "valueSetId": "vaccines-covid-19-names",
      "valueSetDate": "2021-04-27",
      "valueSetValues": {
        "EU/1/20/1528": {"display": "Comirnaty", "lang": "en", "active": true,
                          "version": "", "system": "https://ec.europa.eu/..."}
      }
    }

Lookups never change the decoded record; they only feed rendering.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from pathlib import Path
from types import MappingProxyType

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dcc_decode.railway import ErrorCode, Reason, Result

log = structlog.get_logger()

# statement field → value-set file stem
FIELD_VALUE_SETS: Mapping[str, str] = MappingProxyType(
    {
        "tg": "disease-agent-targeted",
        "vp": "vaccine-prophylaxis",
        "mp": "vaccine-medicinal-product",
        "ma": "vaccine-mah-manf",
    }
)


class ValueSetValue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    display: str
    lang: str | None = None
    active: bool = True
    version: str | None = None
    system: str | None = None


class ValueSet(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    value_set_id: str = Field(alias="valueSetId")
    value_set_date: date | None = Field(default=None, alias="valueSetDate")
    values: dict[str, ValueSetValue] = Field(alias="valueSetValues")


class ValueSetRegistry:
    """Read-only collection of value sets keyed by file stem."""

    __slots__ = ("_sets",)

    def __init__(self, sets: Mapping[str, ValueSet] | None = None) -> None:
        self._sets: Mapping[str, ValueSet] = MappingProxyType(dict(sets or {}))

    @classmethod
    def load(cls, directory: Path) -> Result[ValueSetRegistry]:
        """
        Load the known value-set files from `directory`.

        Missing or unparseable files are skipped with a warning; only a
        missing directory is a CONFIGURATION_ERROR.
        """
        if not directory.is_dir():
            return Result.failure(
                ErrorCode.CONFIGURATION_ERROR,
                Reason.UNREADABLE_SOURCE,
                f"value-set directory {directory} does not exist",
                path=str(directory),
            )
        sets: dict[str, ValueSet] = {}
        for stem in FIELD_VALUE_SETS.values():
            path = directory / f"{stem}.json"
            try:
                sets[stem] = ValueSet.model_validate_json(path.read_bytes())
            except OSError as e:
                log.warning("valuesets.missing", path=str(path), error=e.strerror)
            except ValidationError as e:
                log.warning("valuesets.invalid", path=str(path), errors=e.error_count())
        log.debug("valuesets.loaded", directory=str(directory), sets=sorted(sets))
        return Result.success(cls(sets))

    def display(self, field: str, code: str) -> str | None:
        """Display name for `code` of statement field `field` (tg/vp/mp/ma), or None."""
        stem = FIELD_VALUE_SETS.get(field)
        value_set = self._sets.get(stem) if stem else None
        if value_set is None:
            return None
        entry = value_set.values.get(code)
        return entry.display if entry else None

    def __len__(self) -> int:
        return len(self._sets)
