"""
Unit tests for the value-set registry.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dcc_decode.adapters.valuesets import ValueSetRegistry
from dcc_decode.railway import ErrorCode, Reason, ResultAssertions


def _write_value_set(directory: Path, stem: str, values: dict[str, str]) -> None:
    document = {
        "valueSetId": stem,
        "valueSetDate": "2021-04-27",
        "valueSetValues": {
            code: {"display": display, "lang": "en", "active": True, "version": "", "system": "http://snomed.info/sct"}
            for code, display in values.items()
        },
    }
    (directory / f"{stem}.json").write_text(json.dumps(document), encoding="utf-8")


@pytest.fixture()
def valueset_dir(tmp_path: Path) -> Path:
    _write_value_set(tmp_path, "disease-agent-targeted", {"840539006": "COVID-19"})
    _write_value_set(tmp_path, "vaccine-medicinal-product", {"EU/1/20/1528": "Comirnaty"})
    return tmp_path


class TestValueSetRegistry:
    def test_display_names(self, valueset_dir: Path) -> None:
        """
        GIVEN value-set files for tg and mp
        WHEN the registry is loaded
        THEN coded values resolve to their display names.
        """
        registry = ResultAssertions.assert_success(ValueSetRegistry.load(valueset_dir))

        assert registry.display("tg", "840539006") == "COVID-19"
        assert registry.display("mp", "EU/1/20/1528") == "Comirnaty"

    def test_missing_files_are_skipped(self, valueset_dir: Path) -> None:
        """
        GIVEN no vaccine-prophylaxis file
        WHEN a vp code is looked up
        THEN None is returned.
        """
        registry = ValueSetRegistry.load(valueset_dir).value()

        assert len(registry) == 2
        assert registry.display("vp", "1119349007") is None

    def test_unknown_code_and_field(self, valueset_dir: Path) -> None:
        registry = ValueSetRegistry.load(valueset_dir).value()
        assert registry.display("tg", "000") is None
        assert registry.display("dt", "2021-05-29") is None

    def test_invalid_file_is_skipped(self, tmp_path: Path) -> None:
        (tmp_path / "vaccine-mah-manf.json").write_text('{"valueSetId": "x"}', encoding="utf-8")
        assert len(ValueSetRegistry.load(tmp_path).value()) == 0

    def test_missing_directory(self, tmp_path: Path) -> None:
        ResultAssertions.assert_failure(
            ValueSetRegistry.load(tmp_path / "nope"), ErrorCode.CONFIGURATION_ERROR, Reason.UNREADABLE_SOURCE
        )

    def test_empty_registry(self) -> None:
        assert ValueSetRegistry().display("tg", "840539006") is None
