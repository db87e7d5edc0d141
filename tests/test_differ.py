from aquatron import schemas
from aquatron.services import backup, differ


def _snapshot(stp, **settings):
    return schemas.ConfigSnapshot(
        device_settings=schemas.DeviceSettings(**settings),
        stp_data=[schemas.TestParameter(**row) for row in stp],
    )


def test_modified_and_added():
    original = _snapshot([{"symbol": "Li", "quantity": 10}])
    updated = _snapshot([{"symbol": "Li", "quantity": 20}, {"symbol": "Fe", "quantity": 5}])

    report = differ.compare_snapshots(original, updated)

    assert [(entry.type, entry.symbol) for entry in report.stp_data] == [("modified", "Li"), ("added", "Fe")]
    assert report.stp_data[0].original.quantity == 10
    assert report.stp_data[0].new.quantity == 20
    assert report.summary.stp_data_changes == 2
    assert report.summary.total_changes == 2


def test_identical_snapshots(snapshot):
    report = differ.compare_snapshots(snapshot, snapshot.model_copy(deep=True))
    assert report.summary.total_changes == 0
    assert report.stp_data == []
    assert report.device_settings == {}


def test_removals_follow_additions():
    original = _snapshot([{"symbol": "Ca", "quantity": 1}, {"symbol": "Li", "quantity": 1}])
    updated = _snapshot([{"symbol": "Li", "quantity": 1}, {"symbol": "Na", "quantity": 1}])

    report = differ.compare_snapshots(original, updated)

    assert [(entry.type, entry.symbol) for entry in report.stp_data] == [("added", "Na"), ("removed", "Ca")]
    assert report.stp_data[1].original.symbol == "Ca"


def test_device_setting_changes():
    original = _snapshot([], freefall=100, hptf=2000)
    updated = _snapshot([], freefall=150, hptf=2000, harmonic=1)

    report = differ.compare_snapshots(original, updated)

    assert set(report.device_settings) == {"freefall", "harmonic"}
    assert report.device_settings["freefall"].original == 100
    assert report.device_settings["freefall"].new == 150
    assert report.device_settings["harmonic"].original is None
    assert report.summary.device_settings_changes == 2
    assert report.summary.total_changes == 2


def test_vout_table_is_not_diffed():
    # Known gap: Vout rows are never compared, the bucket stays empty.
    original = schemas.ConfigSnapshot(vout_table=[schemas.VoutEntry(symbol="Li", vout_base=1, freq=10)])
    updated = schemas.ConfigSnapshot(vout_table=[schemas.VoutEntry(symbol="Li", vout_base=9, freq=10)])

    report = differ.compare_snapshots(original, updated)

    assert report.vout_table == []
    assert report.summary.vout_table_changes == 0
    assert report.summary.total_changes == 0


def test_compare_data_sets_wraps_report():
    result = backup.compare_data_sets(_snapshot([]), _snapshot([{"symbol": "Li", "quantity": 1}]))
    assert result.success
    assert result.differences.summary.stp_data_changes == 1
