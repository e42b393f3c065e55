from __future__ import annotations

from pathlib import Path

import pytest

from visubridge.core.command_mapper import READONLY, CommandMapper, load_mappings
from visubridge.core.errors import MappingLoadError, MappingValidationError
from visubridge.core.model import CoverCommands


def _write_mappings(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


VALID_MAPPINGS = """
lights:
  "Single_1_page01": "3+01+00+01"
blinds:
  "Double3_1_page02_up": "5+01+00+02"
  "Double3_1_page02_stop": "5+02+00+02"
  "Double3_1_page02_down": "5+03+00+02"
scenes:
  "Single_9_page03": "11+01+00+03"
sensors:
  "Temp_1_page01": "READONLY"
"""


def test_load_flattens_categories(tmp_path: Path) -> None:
    mapper = load_mappings(_write_mappings(tmp_path / "device_mappings.yaml", VALID_MAPPINGS))
    assert len(mapper) == 6
    assert mapper.categories["Double3_1_page02_up"] == "blinds"
    assert mapper.categories["Temp_1_page01"] == "sensors"
    assert mapper.get_command("Single_1", "01") == "3+01+00+01"
    assert mapper.get_command("Single_1_page01", "01") == "3+01+00+01"


def test_read_only_is_masked() -> None:
    mapper = CommandMapper.from_document({"sensors": {"X_page01": READONLY}})
    assert mapper.get_command("X", "01") is None
    assert mapper.is_read_only("X", "01") is True


def test_unknown_key_is_not_read_only() -> None:
    mapper = CommandMapper.from_document({"lights": {"X_page01": "1+01+00+01"}})
    assert mapper.get_command("Y", "01") is None
    assert mapper.is_read_only("Y", "01") is False


def test_cover_commands(tmp_path: Path) -> None:
    mapper = load_mappings(_write_mappings(tmp_path / "m.yaml", VALID_MAPPINGS))
    assert mapper.get_cover_commands("Double3_1", "02") == CoverCommands(
        up="5+01+00+02",
        stop="5+02+00+02",
        down="5+03+00+02",
    )
    assert mapper.get_cover_command("Double3_1", "02", "stop") == "5+02+00+02"


def test_cover_commands_require_all_three() -> None:
    mapper = CommandMapper.from_document(
        {"blinds": {"B_page01_up": "1+01+00+01", "B_page01_down": "1+03+00+01"}}
    )
    assert mapper.get_cover_commands("B", "01") is None
    assert mapper.get_cover_command("B", "01", "up") == "1+01+00+01"
    assert mapper.get_cover_command("B", "01", "stop") is None


def test_cover_commands_reject_read_only_member() -> None:
    mapper = CommandMapper.from_document(
        {
            "blinds": {
                "B_page01_up": "1+01+00+01",
                "B_page01_stop": READONLY,
                "B_page01_down": "1+03+00+01",
            }
        }
    )
    assert mapper.get_cover_commands("B", "01") is None


def test_cover_command_unknown_action() -> None:
    mapper = CommandMapper({})
    with pytest.raises(ValueError):
        mapper.get_cover_command("B", "01", "left")


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    path = _write_mappings(
        tmp_path / "dup.yaml",
        """
lights:
  "Single_1_page01": "3+01+00+01"
  "Single_1_page01": "4+01+00+01"
""",
    )
    with pytest.raises(MappingValidationError):
        load_mappings(path)


def test_duplicate_keys_across_categories_rejected(tmp_path: Path) -> None:
    path = _write_mappings(
        tmp_path / "cross.yaml",
        """
lights:
  "Single_1_page01": "3+01+00+01"
switches:
  "Single_1_page01": "3+01+00+01"
""",
    )
    with pytest.raises(MappingValidationError) as exc:
        load_mappings(path)
    assert "lights" in str(exc.value)
    assert "switches" in str(exc.value)


def test_unknown_category_rejected(tmp_path: Path) -> None:
    path = _write_mappings(tmp_path / "cat.yaml", 'heating:\n  "H_page01": "1+01+00+01"\n')
    with pytest.raises(MappingValidationError):
        load_mappings(path)


@pytest.mark.parametrize("value", ["3+04+00+01", "3+01+01+01", "readonly", "3+01+00+01&x=1"])
def test_malformed_control_string_rejected(value: str) -> None:
    with pytest.raises(MappingValidationError):
        CommandMapper.from_document({"lights": {"X_page01": value}})


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(MappingLoadError):
        load_mappings(tmp_path / "absent.yaml")


def test_invalid_yaml(tmp_path: Path) -> None:
    path = _write_mappings(tmp_path / "bad.yaml", "lights: [unclosed\n")
    with pytest.raises(MappingValidationError):
        load_mappings(path)


def test_empty_sections_allowed(tmp_path: Path) -> None:
    path = _write_mappings(tmp_path / "empty.yaml", "lights:\nsensors:\n")
    mapper = load_mappings(path)
    assert len(mapper) == 0
    assert mapper.keys() == []
