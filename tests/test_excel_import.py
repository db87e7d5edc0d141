import pytest

from aquatron import schemas
from aquatron.services import excel_import, schema_mapper


def test_merge_sums_quantity_by_symbol():
    rows = [
        {"symbol": "Li", "quantity": 10, "vout_base": 1.5, "freq": 100},
        {"symbol": "Li", "quantity": 15, "vout_base": 9, "freq": 900},
        {"symbol": "Fe", "quantity": 5},
    ]
    merged = excel_import.merge_test_parameters(rows)

    assert merged == [
        {"symbol": "Li", "quantity": 25, "vout_base": 1.5, "freq": 100},
        {"symbol": "Fe", "quantity": 5},
    ]


def test_merge_falls_back_to_name_and_skips_blank_keys():
    rows = [
        {"name": " Lithium ", "quantity": "3"},
        {"symbol": "   ", "quantity": 50},
        {"quantity": 7},
        {"name": "Lithium", "quantity": "bad"},
        {"name": "Lithium", "quantity": 2},
    ]
    merged = excel_import.merge_test_parameters(rows)

    assert merged == [{"name": " Lithium ", "quantity": 5}]


def test_merge_does_not_touch_input_rows():
    rows = [{"symbol": "Li", "quantity": 1}, {"symbol": "Li", "quantity": 2}]
    excel_import.merge_test_parameters(rows)
    assert rows[0]["quantity"] == 1


def test_full_import(make_xlsx):
    content = make_xlsx({
        schema_mapper.DEVICE_SETTINGS_SHEET: [
            {"Parameter": "Freefall", "Value": 300, "Unit": "ms"},
            {"Parameter": "HPTF", "Value": "oops", "Unit": "Hz"},
        ],
        schema_mapper.VOUT_TABLE_SHEET: [{"symbol": "Li", "vout_base": 2, "freq": 50}],
        schema_mapper.STP_SHEET: [
            {"symbol": "Li", "quantity": 10},
            {"symbol": "Li", "quantity": 15},
            {"symbol": "Fe", "quantity": 5},
        ],
    })

    result = excel_import.import_comprehensive_data("config.xlsx", content)

    assert result.success
    assert result.device_settings.freefall == 300
    assert result.device_settings.hptf is None
    assert result.warnings == ["Invalid value for HPTF: oops"]
    assert result.vout_table == [schemas.VoutEntry(symbol="Li", vout_base=2, freq=50)]
    assert [(row.symbol, row.quantity) for row in result.stp_data] == [("Li", 25), ("Fe", 5)]
    assert result.imported_sheets == [
        schema_mapper.DEVICE_SETTINGS_SHEET,
        schema_mapper.VOUT_TABLE_SHEET,
        schema_mapper.STP_SHEET,
    ]
    assert result.total_rows == 2 + 1 + 2
    assert result.backup_info is None


def test_validation_is_advisory(make_xlsx):
    content = make_xlsx({
        schema_mapper.DEVICE_SETTINGS_SHEET: [{"Parameter": "Freefall", "Value": 5000}],
    })

    result = excel_import.import_comprehensive_data("config.xlsx", content, validate_data=True)

    assert result.success
    assert not result.validation.is_valid
    assert "Freefall value must be between 0 and 1000 ms" in result.warnings


def test_workbook_without_known_sheets(make_xlsx):
    content = make_xlsx({"Notes": [{"text": "hello"}]})

    result = excel_import.import_comprehensive_data("notes.xlsx", content)

    assert not result.success
    assert result.message == "No valid data found in the Excel file"
    assert result.imported_sheets == []


@pytest.mark.parametrize(
    "filename, content, expected",
    [
        ("config.xlsx", b"", "File is empty"),
        ("config.csv", b"symbol,quantity", "File must be an Excel file (.xlsx or .xls)"),
    ],
)
def test_upload_rejected_before_parsing(filename, content, expected):
    with pytest.raises(excel_import.ExcelImportError) as exc_info:
        excel_import.import_comprehensive_data(filename, content)

    result = exc_info.value.result
    assert not result.success
    assert result.message == "File validation failed"
    assert expected in result.errors


def test_corrupt_workbook_is_a_parse_rejection():
    with pytest.raises(excel_import.ExcelImportError) as exc_info:
        excel_import.import_comprehensive_data("broken.xlsx", b"definitely not a zip archive")

    result = exc_info.value.result
    assert result.message == "Failed to import data"
    assert result.error


def test_malformed_workbook_part_is_a_parse_rejection(malformed_xlsx):
    with pytest.raises(excel_import.ExcelImportError) as exc_info:
        excel_import.import_comprehensive_data("broken.xlsx", malformed_xlsx)

    assert exc_info.value.result.message == "Failed to import data"


def test_formula_like_text_survives_round_trip(make_xlsx):
    content = make_xlsx({schema_mapper.STP_SHEET: [{"symbol": "Li", "name": "=1+1", "quantity": 3}]})

    result = excel_import.import_comprehensive_data("formula.xlsx", content)

    assert result.stp_data == [schemas.TestParameter(symbol="Li", name="=1+1", quantity=3)]


def test_device_settings_only(make_xlsx):
    content = make_xlsx({
        schema_mapper.BASIC_SETTINGS_SHEET: [
            {"Parameter": "Duration", "Value": 2000, "Unit": "ms"},
            {"Parameter": "HPTF", "Value": "n/a", "Unit": "Hz"},
        ],
        schema_mapper.VOUT_TABLE_SHEET: [{"symbol": "Na", "vout_base": 3, "freq": 60}],
    })

    result = excel_import.import_device_settings_only("device.xlsx", content)

    assert result.success
    assert result.device_settings.known_values() == {"duration_ms": 2000}
    assert result.warnings == []
    assert [entry.symbol for entry in result.vout_table] == ["Na"]


def test_stp_only_keeps_duplicates(make_xlsx):
    content = make_xlsx({
        schema_mapper.STP_SHEET: [{"symbol": "Li", "quantity": 1}, {"symbol": "Li", "quantity": 2}],
    })

    result = excel_import.import_stp_only("stp.xlsx", content)

    assert result.success
    assert [row.quantity for row in result.stp_data] == [1, 2]


def test_stp_only_without_rows(make_xlsx):
    result = excel_import.import_stp_only("stp.xlsx", make_xlsx({"Other": [{"a": 1}]}))
    assert not result.success
    assert result.message == "No STP data found in the Excel file"
