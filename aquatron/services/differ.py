from __future__ import annotations

from typing import Dict, List

from aquatron import schemas


def compare_snapshots(
    original: schemas.ConfigSnapshot,
    updated: schemas.ConfigSnapshot,
) -> schemas.DiffReport:
    """
    Field-by-field comparison of device settings and a symbol-keyed
    comparison of test parameters.

    Entries for added/modified parameters follow `updated` order and are
    followed by removals in `original` order. Vout table rows are not
    compared: `vout_table` stays empty and `vout_table_changes` stays 0.
    """
    report = schemas.DiffReport()

    original_values = original.device_settings.set_values()
    updated_values = updated.device_settings.set_values()
    for key in _ordered_union(original_values, updated_values):
        before = original_values.get(key)
        after = updated_values.get(key)
        if before != after:
            report.device_settings[key] = schemas.FieldChange(original=before, new=after)
            report.summary.device_settings_changes += 1
            report.summary.total_changes += 1

    report.stp_data = _diff_test_parameters(original.stp_data, updated.stp_data)
    report.summary.stp_data_changes = len(report.stp_data)
    report.summary.total_changes += len(report.stp_data)
    return report


def _diff_test_parameters(
    original: List[schemas.TestParameter],
    updated: List[schemas.TestParameter],
) -> List[schemas.DiffEntry]:
    original_map = {item.symbol: item for item in original}
    updated_map = {item.symbol: item for item in updated}

    entries: List[schemas.DiffEntry] = []
    for item in updated:
        before = original_map.get(item.symbol)
        if before is None:
            entries.append(schemas.DiffEntry(type="added", symbol=item.symbol, new=item))
        elif before.model_dump() != item.model_dump():
            entries.append(
                schemas.DiffEntry(type="modified", symbol=item.symbol, original=before, new=item)
            )

    for item in original:
        if item.symbol not in updated_map:
            entries.append(schemas.DiffEntry(type="removed", symbol=item.symbol, original=item))
    return entries


def _ordered_union(first: Dict, second: Dict) -> List[str]:
    keys = list(first)
    keys.extend(key for key in second if key not in first)
    return keys
