from dataclasses import dataclass

import pytest
import yaml

from kubeshark.config_struct import ConfigStruct, create_default_config
from kubeshark.fields import Kind, ValueParseError, yaml_field
from kubeshark.settings import (
    ConfigFlagError,
    default_config_file_path,
    get_config_with_defaults,
    load_config_file,
    merge_flag_value,
    merge_flag_values,
    merge_set_flag,
    pretty_yaml,
    write_config,
)


@dataclass
class SectionMock:
    test: str = yaml_field("test", Kind.STRING)


@dataclass
class ConfigMock:
    section: SectionMock = yaml_field("section", Kind.STRUCT, factory=SectionMock)
    test: str = yaml_field("test", Kind.STRING)
    string_field: str = yaml_field("string-field", Kind.STRING)
    int_field: int = yaml_field("int-field", Kind.INT)
    bool_field: bool = yaml_field("bool-field", Kind.BOOL)
    uint_field: int = yaml_field("uint-field", Kind.UINT)
    string_slice_field: list = yaml_field("string-slice-field", Kind.STRING_LIST)
    int_slice_field: list = yaml_field("int-slice-field", Kind.INT_LIST)
    bool_slice_field: list = yaml_field("bool-slice-field", Kind.BOOL_LIST)
    uint_slice_field: list = yaml_field("uint-slice-field", Kind.UINT_LIST)


@pytest.mark.parametrize(
    "set_values",
    [[""], ["t"], ["", "t"], ["test", "test:true"], ["test", "test:true", "testing!", "true"]],
)
def test_merge_set_flag_no_separator(set_values):
    config = ConfigMock()
    with pytest.raises(ConfigFlagError):
        merge_set_flag(config, set_values)
    assert config == ConfigMock()


@pytest.mark.parametrize(
    "set_values",
    [
        ["invalid_flag=true"],
        ["section.invalid_flag=test"],
        ["section=test"],
        ["=true"],
        ["invalid_flag=true", "config.invalid_flag=test", "section=test", "=true"],
    ],
)
def test_merge_set_flag_invalid_flag_name(set_values):
    config = ConfigMock()
    with pytest.raises(ConfigFlagError):
        merge_set_flag(config, set_values)
    assert config == ConfigMock()


@pytest.mark.parametrize(
    "set_values",
    [
        ["int-field=true"],
        ["bool-field:5"],
        ["uint-field=-1"],
        ["int-slice-field=true"],
        ["bool-slice-field=5"],
        ["uint-slice-field=-1"],
        ["int-field=6", "int-field=66"],
    ],
)
def test_merge_set_flag_invalid_flag_value(set_values):
    config = ConfigMock()
    with pytest.raises(ConfigFlagError):
        merge_set_flag(config, set_values)
    assert config == ConfigMock()


STRING_FIELD = (["string-field=test"], "string_field", "test")
INT_FIELD = (["int-field=6"], "int_field", 6)
BOOL_FIELD = (["bool-field=true"], "bool_field", True)
UINT_FIELD = (["uint-field=6"], "uint_field", 6)

STRING_SLICE_ONE = (["string-slice-field=test"], "string_slice_field", ["test"])
INT_SLICE_ONE = (["int-slice-field=6"], "int_slice_field", [6])
BOOL_SLICE_ONE = (["bool-slice-field=true"], "bool_slice_field", [True])
UINT_SLICE_ONE = (["uint-slice-field=6"], "uint_slice_field", [6])

STRING_SLICE_TWO = (
    ["string-slice-field=test", "string-slice-field=test2"],
    "string_slice_field",
    ["test", "test2"],
)
INT_SLICE_TWO = (["int-slice-field=6", "int-slice-field=66"], "int_slice_field", [6, 66])
BOOL_SLICE_TWO = (
    ["bool-slice-field=true", "bool-slice-field=false"],
    "bool_slice_field",
    [True, False],
)
UINT_SLICE_TWO = (["uint-slice-field=6", "uint-slice-field=66"], "uint_slice_field", [6, 66])


def _apply_and_check(cases):
    config = ConfigMock()
    set_values = [value for values, _, _ in cases for value in values]
    merge_set_flag(config, set_values)
    for _, attribute, expected in cases:
        assert getattr(config, attribute) == expected


@pytest.mark.parametrize(
    "cases",
    [
        [STRING_FIELD],
        [INT_FIELD],
        [BOOL_FIELD],
        [UINT_FIELD],
        [STRING_FIELD, INT_FIELD, BOOL_FIELD, UINT_FIELD],
    ],
)
def test_merge_set_flag_not_slice_values(cases):
    _apply_and_check(cases)


@pytest.mark.parametrize(
    "cases",
    [
        [STRING_SLICE_ONE],
        [INT_SLICE_ONE],
        [BOOL_SLICE_ONE],
        [UINT_SLICE_ONE],
        [STRING_SLICE_ONE, INT_SLICE_ONE, BOOL_SLICE_ONE, UINT_SLICE_ONE],
        [STRING_SLICE_TWO],
        [INT_SLICE_TWO],
        [BOOL_SLICE_TWO],
        [UINT_SLICE_TWO],
        [STRING_SLICE_TWO, INT_SLICE_TWO, BOOL_SLICE_TWO, UINT_SLICE_TWO],
    ],
)
def test_merge_set_flag_slice_values(cases):
    _apply_and_check(cases)


@pytest.mark.parametrize(
    "cases",
    [
        [
            STRING_SLICE_ONE,
            INT_SLICE_ONE,
            BOOL_SLICE_ONE,
            UINT_SLICE_ONE,
            STRING_FIELD,
            INT_FIELD,
            BOOL_FIELD,
            UINT_FIELD,
        ],
        [
            STRING_SLICE_TWO,
            INT_SLICE_TWO,
            BOOL_SLICE_TWO,
            UINT_SLICE_TWO,
            STRING_FIELD,
            INT_FIELD,
            BOOL_FIELD,
            UINT_FIELD,
        ],
    ],
)
def test_merge_set_flag_mix_values(cases):
    _apply_and_check(cases)


def test_merge_set_flag_applies_valid_values_despite_errors():
    config = ConfigMock()
    with pytest.raises(ConfigFlagError):
        merge_set_flag(config, ["string-field=test", "int-field=true"])
    assert config.string_field == "test"
    assert config.int_field == 0


def test_merge_flag_value_nested_section():
    config = ConfigMock()
    merge_flag_value(config, ["section", "test"], "section.test", "inner")
    assert config.section.test == "inner"
    assert config.test == ""


def test_merge_flag_value_reports_missing_flag():
    with pytest.raises(ConfigFlagError, match='flag "section.nope" not found'):
        merge_flag_value(ConfigMock(), ["section", "nope"], "section.nope", "x")


def test_merge_flag_values_rejects_scalar_field():
    config = ConfigMock()
    with pytest.raises(ConfigFlagError):
        merge_flag_values(config, ["int-field"], "int-field", ["1", "2"])
    assert config.int_field == 0


def test_merge_flag_value_into_real_config():
    config = create_default_config()
    merge_flag_value(config, ["tap", "proxy", "front", "port"], "tap.proxy.front.port", "9000")
    merge_flag_value(config, ["tap", "namespaces"], "tap.namespaces", "default")
    assert config.tap.proxy.front.port == 9000
    assert config.tap.namespaces == ["default"]


def test_merge_flag_value_respects_uint16_range():
    config = create_default_config()
    with pytest.raises(ConfigFlagError):
        merge_flag_value(config, ["tap", "proxy", "front", "port"], "tap.proxy.front.port", "70000")
    assert config.tap.proxy.front.port == ConfigStruct().tap.proxy.front.port


def test_get_config_with_defaults_resets_readonly():
    config = get_config_with_defaults()
    assert config.config.regenerate is False
    assert config == ConfigStruct()


def test_default_config_file_path_is_in_dot_folder():
    path = default_config_file_path()
    assert path.endswith("config.yaml")
    assert ".kubeshark" in path


def test_pretty_yaml_parses_back():
    config = create_default_config()
    data = yaml.safe_load(pretty_yaml(config))
    assert data["logLevel"] == "warning"
    assert data["tap"]["capabilities"]["networkCapture"] == ["NET_RAW", "NET_ADMIN"]


def test_write_and_load_round_trip(tmp_path):
    original = create_default_config()
    original.license = "placeholder"
    original.tap.namespaces = ["one", "two"]
    target = tmp_path / "nested" / "config.yaml"
    written = write_config(original, target)
    assert written == str(target)

    empty_cwd = tmp_path / "cwd"
    empty_cwd.mkdir()
    loaded = create_default_config()
    used = load_config_file(loaded, target, empty_cwd, True)
    assert used == str(target)
    assert loaded == original


def test_load_prefers_working_directory_file(tmp_path):
    fallback = tmp_path / "fallback.yaml"
    fallback.write_text("logLevel: error\n")
    (tmp_path / "kubeshark.yaml").write_text("logLevel: debug\n")
    config = ConfigStruct()
    used = load_config_file(config, fallback, tmp_path, True)
    assert used == str(tmp_path / "kubeshark.yaml")
    assert config.log_level == "debug"


def test_load_missing_files_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config_file(ConfigStruct(), tmp_path / "missing.yaml", tmp_path, True)


def test_load_wrong_kind_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("headless: notabool\n")
    with pytest.raises(ValueParseError):
        load_config_file(ConfigStruct(), path, tmp_path / "nowhere", True)


def test_load_empty_file_keeps_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    config = ConfigStruct()
    load_config_file(config, path, tmp_path / "nowhere", True)
    assert config == ConfigStruct()