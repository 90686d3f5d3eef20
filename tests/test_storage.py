"""Tests for storage backends and JSON codecs."""

import datetime as dt
import json

import pytest

from water_tracker.models import (
    ActivityLevel,
    DailyGoal,
    Gender,
    ReminderSchedule,
    UserProfile,
    WaterIntakeEntry,
)
from water_tracker.services.storage import (
    FileStorage,
    InMemoryStorage,
    LoadFailed,
    SaveFailed,
    decode_entries,
    decode_goal,
    decode_profile,
    decode_reminders,
    encode_entries,
    encode_goal,
    encode_profile,
    encode_reminders,
)


class TestFileStorage:

    def test_put_then_get(self, tmp_path):
        storage = FileStorage(str(tmp_path / "data"))
        storage.put("waterIntakes", b"[]")
        assert storage.get("waterIntakes") == b"[]"
        assert (tmp_path / "data" / "waterIntakes.json").read_bytes() == b"[]"

    def test_missing_key_is_none(self, tmp_path):
        assert FileStorage(str(tmp_path)).get("dailyGoal") is None

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        storage = FileStorage(str(tmp_path))
        storage.put("dailyGoal", b'{"target": 1}')
        storage.put("dailyGoal", b'{"target": 2}')
        assert storage.get("dailyGoal") == b'{"target": 2}'
        assert sorted(p.name for p in tmp_path.iterdir()) == ["dailyGoal.json"]

    def test_rejects_path_traversal(self, tmp_path):
        storage = FileStorage(str(tmp_path / "data"))
        with pytest.raises(ValueError):
            storage.put("../outside", b"x")

    def test_write_error_raises_save_failed(self, tmp_path, monkeypatch):
        storage = FileStorage(str(tmp_path))

        def broken_replace(src, dst):
            raise OSError("No space left on device")

        monkeypatch.setattr("water_tracker.services.storage.os.replace", broken_replace)
        with pytest.raises(SaveFailed):
            storage.put("waterIntakes", b"[]")
        assert list(tmp_path.iterdir()) == []


def test_in_memory_storage_copies_bytes():
    storage = InMemoryStorage()
    data = bytearray(b"[]")
    storage.put("waterIntakes", data)
    data[0:2] = b"{}"
    assert storage.get("waterIntakes") == b"[]"


class TestCodecs:

    def test_entries_round_trip(self):
        entries = [
            WaterIntakeEntry(amount=250.0, timestamp=dt.datetime(2024, 5, 15, 8, 30, 12, 345678)),
            WaterIntakeEntry(amount=333.3, timestamp=dt.datetime(2024, 5, 15, 23, 59, 59)),
        ]
        assert decode_entries(encode_entries(entries)) == entries

    def test_entries_wire_fields(self):
        entry = WaterIntakeEntry(amount=100.0, timestamp=dt.datetime(2024, 1, 2, 3, 4, 5), id="abc")
        assert json.loads(encode_entries([entry])) == [
            {"id": "abc", "amount": 100.0, "timestamp": "2024-01-02T03:04:05"}
        ]

    def test_goal_round_trip(self):
        assert decode_goal(encode_goal(DailyGoal(target=2750.5))) == DailyGoal(target=2750.5)

    def test_profile_round_trip(self):
        profile = UserProfile(
            weight=82.5, height=181, age=41, gender=Gender.FEMALE, activity_level=ActivityLevel.EXTREME
        )
        assert decode_profile(encode_profile(profile)) == profile
        assert json.loads(encode_profile(profile))["activityLevel"] == "extreme"

    def test_reminders_round_trip(self):
        reminders = [ReminderSchedule(hour=9, minute=30), ReminderSchedule(hour=21, minute=0, enabled=False, days=[1, 7])]
        assert decode_reminders(encode_reminders(reminders)) == reminders

    def test_absent_data_gives_defaults(self):
        assert decode_entries(None) == []
        assert decode_goal(None) == DailyGoal(target=2000)
        assert decode_profile(None) == UserProfile()
        assert decode_reminders(None) == []

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"\xff\xfe",
            b'{"id": "x"}',
            b'[{"id": "x", "amount": 10}]',
            b'[{"id": "x", "amount": "lots", "timestamp": "2024-01-01T00:00:00"}]',
            b'[{"id": "x", "amount": 10, "timestamp": "yesterday"}]',
        ],
    )
    def test_corrupt_entries_raise_load_failed(self, raw):
        with pytest.raises(LoadFailed):
            decode_entries(raw)

    @pytest.mark.parametrize("raw", [b"[]", b'{"goal": 1}', b'{"target": null}', b"2000"])
    def test_corrupt_goal_raises_load_failed(self, raw):
        with pytest.raises(LoadFailed):
            decode_goal(raw)

    def test_unknown_enum_value_raises_load_failed(self):
        raw = b'{"weight": 70, "height": 170, "age": 30, "gender": "other", "activityLevel": "moderate"}'
        with pytest.raises(LoadFailed):
            decode_profile(raw)

    def test_non_positive_amounts_are_dropped(self):
        raw = json.dumps(
            [
                {"id": "a", "amount": 0, "timestamp": "2024-01-01T10:00:00"},
                {"id": "b", "amount": -5, "timestamp": "2024-01-01T11:00:00"},
                {"id": "c", "amount": 150, "timestamp": "2024-01-01T12:00:00"},
            ]
        ).encode()
        assert [entry.id for entry in decode_entries(raw)] == ["c"]

    @pytest.mark.parametrize("raw", [b'{"target": NaN}', b'{"target": Infinity}', b'{"target": -500}'])
    def test_invalid_goal_value_raises_load_failed(self, raw):
        with pytest.raises(LoadFailed):
            decode_goal(raw)

    def test_zero_goal_is_accepted(self):
        assert decode_goal(b'{"target": 0}') == DailyGoal(target=0)

    def test_infinite_amounts_are_dropped(self):
        raw = (
            b'[{"id": "a", "amount": Infinity, "timestamp": "2024-01-01T10:00:00"},'
            b' {"id": "b", "amount": NaN, "timestamp": "2024-01-01T11:00:00"},'
            b' {"id": "c", "amount": 200, "timestamp": "2024-01-01T12:00:00"}]'
        )
        assert [entry.id for entry in decode_entries(raw)] == ["c"]

    def test_aware_timestamp_becomes_local_naive(self):
        raw = b'[{"id": "a", "amount": 250, "timestamp": "2024-05-15T12:00:00+00:00"}]'
        (entry,) = decode_entries(raw)
        expected = dt.datetime(2024, 5, 15, 12, 0, tzinfo=dt.timezone.utc).astimezone().replace(tzinfo=None)
        assert entry.timestamp.tzinfo is None
        assert entry.timestamp == expected
