"""
Tests for WaterIntakeStore: entry CRUD, today's total, progress and persistence.
"""

import datetime as dt

import pytest

from water_tracker.models import DEFAULT_GOAL_ML, Timeframe
from water_tracker.services.intake_store import WaterIntakeStore
from water_tracker.services.storage import (
    DAILY_GOAL_KEY,
    WATER_INTAKES_KEY,
    LoadFailed,
    SaveFailed,
)


class TestEntries:

    def test_add_entry_returns_id_and_updates_total(self, store, clock):
        entry_id = store.add_entry(250)
        assert store.get_entry(entry_id).amount == 250
        assert store.get_entry(entry_id).timestamp == clock.now
        assert store.today_total == 250

    def test_today_total_tracks_every_addition(self, store):
        added = 0.0
        for amount in [300, 500, 125.5, 74.5]:
            store.add_entry(amount)
            added += amount
            assert store.today_total == added

    def test_entries_keep_insertion_order(self, store):
        ids = [store.add_entry(amount) for amount in [100, 200, 300]]
        assert [entry.id for entry in store.entries] == ids

    def test_entries_returns_copy(self, store):
        store.add_entry(100)
        store.entries.clear()
        assert len(store.entries) == 1

    @pytest.mark.parametrize("amount", [0, -50, float("nan"), float("inf")])
    def test_add_entry_rejects_invalid_amount(self, store, amount):
        with pytest.raises(ValueError):
            store.add_entry(amount)
        assert store.entries == []

    def test_remove_at_position_zero(self, store):
        store.add_entry(100)
        store.add_entry(200)
        store.remove_at(0)
        assert len(store.entries) == 1
        assert store.today_total == 200

    def test_remove_at_stale_index_is_noop(self, store):
        store.add_entry(100)
        store.remove_at(5)
        store.remove_at(-1)
        assert store.today_total == 100

    def test_remove_entry_by_id(self, store):
        first = store.add_entry(100)
        store.add_entry(200)
        store.remove_entry(first)
        assert store.get_entry(first) is None
        assert store.today_total == 200

    def test_remove_unknown_id_is_noop(self, store, storage):
        store.add_entry(100)
        saved = storage.get(WATER_INTAKES_KEY)
        store.remove_entry("missing")
        assert store.today_total == 100
        assert storage.get(WATER_INTAKES_KEY) == saved

    def test_update_entry_amount_keeps_timestamp(self, store, clock):
        entry_id = store.add_entry(100)
        clock.advance(minutes=30)
        store.update_entry_amount(entry_id, 450)
        entry = store.get_entry(entry_id)
        assert entry.amount == 450
        assert entry.timestamp == clock.now - dt.timedelta(minutes=30)
        assert store.today_total == 450

    def test_update_unknown_id_is_noop(self, store):
        store.add_entry(100)
        store.update_entry_amount("missing", 900)
        assert store.today_total == 100

    def test_update_rejects_non_positive_amount(self, store):
        entry_id = store.add_entry(100)
        with pytest.raises(ValueError):
            store.update_entry_amount(entry_id, 0)
        assert store.get_entry(entry_id).amount == 100


class TestTodayTotal:

    def test_only_today_counts(self, store, clock, log_at):
        log_at(clock.now - dt.timedelta(days=1), 700)
        store.add_entry(300)
        assert store.today_total == 300
        assert [entry.amount for entry in store.today_entries()] == [300]

    def test_day_rollover_needs_refresh(self, store, clock):
        store.add_entry(500)
        clock.now = dt.datetime(2024, 5, 16, 0, 0, 1)
        # значение пересчитывается только по запросу
        assert store.today_total == 500
        assert store.calculate_today_total() == 0
        assert store.today_total == 0

    def test_midnight_boundary_is_local_day(self, store, clock, log_at):
        log_at(dt.datetime(2024, 5, 14, 23, 59, 59), 400)
        log_at(dt.datetime(2024, 5, 15, 0, 0), 600)
        assert store.today_total == 600


class TestProgress:

    def test_progress_is_capped(self, store):
        store.set_goal(2000)
        assert store.daily_progress() == 0
        store.add_entry(500)
        assert store.daily_progress() == 0.25
        store.add_entry(1500)
        assert store.daily_progress() == 1.0
        store.add_entry(1000)
        assert store.daily_progress() == 1.0

    @pytest.mark.parametrize("target", [0, 0.5, 1])
    def test_zero_goal_is_safe(self, store, target):
        store.set_goal(target)
        assert store.daily_progress() == 0
        store.add_entry(0.5)
        assert store.daily_progress() == 0.5
        store.add_entry(10)
        assert store.daily_progress() == 1.0

    def test_set_goal_rejects_negative(self, store):
        with pytest.raises(ValueError):
            store.set_goal(-1)
        assert store.goal.target == DEFAULT_GOAL_ML


class TestReset:

    def test_reset_clears_everything(self, store):
        store.add_entry(400)
        store.set_goal(3000)
        store.reset()
        assert store.today_total == 0
        assert store.entries == []
        assert store.goal.target == 2000

    def test_reset_twice_is_same_state(self, store, storage):
        store.add_entry(400)
        store.reset()
        first = (storage.get(WATER_INTAKES_KEY), storage.get(DAILY_GOAL_KEY))
        store.reset()
        assert (storage.get(WATER_INTAKES_KEY), storage.get(DAILY_GOAL_KEY)) == first
        assert store.entries == []


class TestPersistence:

    def test_state_survives_restart(self, store, storage, clock):
        first = store.add_entry(250.5)
        store.add_entry(300)
        store.set_goal(2750)

        reloaded = WaterIntakeStore(storage, clock=clock)
        assert [(e.id, e.amount, e.timestamp) for e in reloaded.entries] == [
            (e.id, e.amount, e.timestamp) for e in store.entries
        ]
        assert reloaded.goal.target == 2750
        assert reloaded.today_total == 550.5
        assert reloaded.get_entry(first).amount == 250.5

    def test_empty_storage_gives_defaults(self, storage, clock):
        store = WaterIntakeStore(storage, clock=clock)
        assert store.entries == []
        assert store.goal.target == 2000
        assert store.error_message == ""

    def test_corrupt_storage_gives_defaults(self, storage, clock):
        storage.put(WATER_INTAKES_KEY, b"{not json")
        storage.put(DAILY_GOAL_KEY, b'{"target": 2500}')
        store = WaterIntakeStore(storage, clock=clock)
        assert store.entries == []
        assert store.goal.target == 2000
        assert store.error_message == LoadFailed.message

    def test_read_failure_gives_defaults(self, clock):
        class BrokenStorage:
            def get(self, key):
                raise LoadFailed(f"{key}: permission denied")

            def put(self, key, data):
                pass

        store = WaterIntakeStore(BrokenStorage(), clock=clock)
        assert store.entries == []
        assert store.error_message == LoadFailed.message

    def test_nan_goal_falls_back_to_default(self, storage, clock):
        storage.put(DAILY_GOAL_KEY, b'{"target": NaN}')
        store = WaterIntakeStore(storage, clock=clock)
        store.add_entry(500)
        assert store.goal.target == DEFAULT_GOAL_ML
        assert 0.0 <= store.daily_progress() <= 1.0

    def test_stored_aware_timestamps_work_in_statistics(self, storage, clock):
        storage.put(
            WATER_INTAKES_KEY,
            b'[{"id": "a", "amount": 800, "timestamp": "2024-05-13T12:00:00+00:00"}]',
        )
        store = WaterIntakeStore(storage, clock=clock)
        assert store.average_intake(Timeframe.WEEK) == 800
        assert store.error_message == ""

    def test_save_failure_keeps_memory_state(self, failing_storage, clock):
        store = WaterIntakeStore(failing_storage, clock=clock)
        failing_storage.fail_writes = True
        entry_id = store.add_entry(300)
        assert store.get_entry(entry_id) is not None
        assert store.today_total == 300
        assert store.error_message == SaveFailed.message

    def test_successful_save_clears_error(self, failing_storage, clock):
        store = WaterIntakeStore(failing_storage, clock=clock)
        failing_storage.fail_writes = True
        store.add_entry(300)
        failing_storage.fail_writes = False
        store.add_entry(200)
        assert store.error_message == ""
        assert len(WaterIntakeStore(failing_storage, clock=clock).entries) == 2


class TestListeners:

    def test_entry_listener_fires_once_per_add(self, store):
        amounts = []
        store.add_entry_listener(amounts.append)
        store.add_entry(250)
        store.add_entry(100)
        store.set_goal(2500)
        assert amounts == [250, 100]

    def test_entry_listener_fires_after_persisting(self, store, storage):
        seen = []
        store.add_entry_listener(lambda amount: seen.append(storage.get(WATER_INTAKES_KEY)))
        store.add_entry(250)
        assert seen[0] is not None and b"250" in seen[0]

    def test_entry_listener_fires_even_when_save_fails(self, failing_storage, clock):
        store = WaterIntakeStore(failing_storage, clock=clock)
        failing_storage.fail_writes = True
        amounts = []
        store.add_entry_listener(amounts.append)
        store.add_entry(250)
        assert amounts == [250]

    def test_invalid_add_does_not_fire(self, store):
        amounts = []
        store.add_entry_listener(amounts.append)
        with pytest.raises(ValueError):
            store.add_entry(0)
        assert amounts == []

    def test_subscribe_and_unsubscribe(self, store):
        calls = []
        unsubscribe = store.subscribe(lambda s: calls.append(s.today_total))
        entry_id = store.add_entry(100)
        store.update_entry_amount(entry_id, 150)
        store.set_goal(1800)
        store.remove_entry(entry_id)
        unsubscribe()
        store.add_entry(300)
        assert calls == [100, 150, 150, 0]
