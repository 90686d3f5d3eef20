import datetime as dt
import logging
import math
from typing import Callable, List, Optional

from water_tracker.models import DEFAULT_GOAL_ML, DailyGoal, DayTotal, Timeframe, WaterIntakeEntry
from water_tracker.services import statistics
from water_tracker.services.storage import (
    DAILY_GOAL_KEY,
    WATER_INTAKES_KEY,
    KeyValueStorage,
    LoadFailed,
    PersistenceError,
    decode_entries,
    decode_goal,
    encode_entries,
    encode_goal,
)

EntryListener = Callable[[float], None]
ChangeListener = Callable[["WaterIntakeStore"], None]


def _require_positive(amount: float) -> float:
    amount = float(amount)
    if not math.isfinite(amount) or amount <= 0:
        raise ValueError(f"Объем должен быть положительным числом, получено {amount}")
    return amount


class WaterIntakeStore:
    """Записи о выпитой воде и дневная цель.

    Каждое изменение сразу сохраняется в хранилище и пересчитывает today_total.
    Ошибки хранилища не пробрасываются наружу: состояние в памяти остается,
    а текст ошибки доступен в error_message.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.storage = storage
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)
        self._entries: List[WaterIntakeEntry] = []
        self.goal = DailyGoal()
        self.today_total = 0.0
        self.error_message = ""
        self._entry_listeners: List[EntryListener] = []
        self._change_listeners: List[ChangeListener] = []
        self.load()
        self.calculate_today_total()

    #Подписки
    def add_entry_listener(self, callback: EntryListener) -> None:
        self._entry_listeners.append(callback)

    def subscribe(self, callback: ChangeListener) -> Callable[[], None]:
        self._change_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._change_listeners:
                self._change_listeners.remove(callback)

        return unsubscribe

    def _notify_changed(self) -> None:
        for callback in list(self._change_listeners):
            callback(self)

    #Чтение
    @property
    def entries(self) -> List[WaterIntakeEntry]:
        return list(self._entries)

    def get_entry(self, entry_id: str) -> Optional[WaterIntakeEntry]:
        return next((entry for entry in self._entries if entry.id == entry_id), None)

    def today_entries(self) -> List[WaterIntakeEntry]:
        today = self.clock().date()
        return [entry for entry in self._entries if entry.timestamp.date() == today]

    def calculate_today_total(self) -> float:
        self.today_total = sum((entry.amount for entry in self.today_entries()), 0.0)
        return self.today_total

    def daily_progress(self) -> float:
        return min(self.today_total / max(self.goal.target, 1.0), 1.0)

    #Изменения
    def add_entry(self, amount: float) -> str:
        entry = WaterIntakeEntry(amount=_require_positive(amount), timestamp=self.clock())
        self._entries.append(entry)
        self.save()
        self.calculate_today_total()
        self.logger.debug("Entry %s added: %.0f ml", entry.id, entry.amount)
        for callback in list(self._entry_listeners):
            callback(entry.amount)
        self._notify_changed()
        return entry.id

    def remove_entry(self, entry_id: str) -> None:
        index = next((i for i, entry in enumerate(self._entries) if entry.id == entry_id), None)
        if index is None:
            return
        self.remove_at(index)

    def remove_at(self, index: int) -> None:
        # устаревший индекс не ошибка
        if not 0 <= index < len(self._entries):
            return
        del self._entries[index]
        self.save()
        self.calculate_today_total()
        self._notify_changed()

    def update_entry_amount(self, entry_id: str, amount: float) -> None:
        amount = _require_positive(amount)
        entry = self.get_entry(entry_id)
        if entry is None:
            return
        entry.amount = amount
        self.save()
        self.calculate_today_total()
        self._notify_changed()

    def set_goal(self, target: float) -> None:
        target = float(target)
        if not math.isfinite(target) or target < 0:
            raise ValueError(f"Цель должна быть неотрицательным числом, получено {target}")
        self.goal = DailyGoal(target=target)
        self.save()
        self._notify_changed()

    def reset(self) -> None:
        #Полная очистка, только для отладки.
        self._entries = []
        self.goal = DailyGoal(target=DEFAULT_GOAL_ML)
        self.save()
        self.calculate_today_total()
        self._notify_changed()

    #Статистика
    def filtered_entries(self, timeframe: Timeframe) -> List[WaterIntakeEntry]:
        return statistics.filter_entries(self._entries, timeframe, self.clock())

    def average_intake(self, timeframe: Timeframe) -> float:
        return statistics.average_intake(self.filtered_entries(timeframe))

    def achievement_rate(self, timeframe: Timeframe) -> float:
        # берется текущая цель, даже для прошлых дней
        return statistics.achievement_rate(self.filtered_entries(timeframe), self.goal.target)

    def best_day(self, timeframe: Timeframe) -> Optional[DayTotal]:
        return statistics.best_day(self.filtered_entries(timeframe))

    def daily_totals(self, timeframe: Timeframe) -> List[DayTotal]:
        return statistics.daily_totals(self.filtered_entries(timeframe))

    #Хранилище
    def save(self) -> bool:
        try:
            self.storage.put(WATER_INTAKES_KEY, encode_entries(self._entries))
            self.storage.put(DAILY_GOAL_KEY, encode_goal(self.goal))
        except PersistenceError as exc:
            self.error_message = exc.message
            self.logger.error("Error saving data: %s", exc)
            return False
        self.error_message = ""
        return True

    def load(self) -> bool:
        try:
            entries = decode_entries(self.storage.get(WATER_INTAKES_KEY))
            goal = decode_goal(self.storage.get(DAILY_GOAL_KEY))
        except LoadFailed as exc:
            self._entries = []
            self.goal = DailyGoal()
            self.error_message = exc.message
            self.logger.error("Error loading data: %s", exc)
            return False
        self._entries = entries
        self.goal = goal
        return True
