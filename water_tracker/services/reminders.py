import logging
from typing import Callable, Iterable, List, Optional

from water_tracker.models import ReminderSchedule
from water_tracker.services.storage import (
    REMINDERS_KEY,
    KeyValueStorage,
    LoadFailed,
    PersistenceError,
    decode_reminders,
    encode_reminders,
)

ReminderListener = Callable[[List[ReminderSchedule]], None]


def _validate_time(hour: int, minute: int) -> None:
    if not 0 <= hour <= 23:
        raise ValueError(f"Час должен быть от 0 до 23, получено {hour}")
    if not 0 <= minute <= 59:
        raise ValueError(f"Минуты должны быть от 0 до 59, получено {minute}")


class ReminderStore:
    #Расписание напоминаний; само планирование делает ReminderScheduler в боте.

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage
        self.logger = logging.getLogger(self.__class__.__name__)
        self._reminders: List[ReminderSchedule] = []
        self._listeners: List[ReminderListener] = []
        self.load()

    @property
    def reminders(self) -> List[ReminderSchedule]:
        return list(self._reminders)

    def subscribe(self, callback: ReminderListener) -> None:
        self._listeners.append(callback)

    def get(self, reminder_id: str) -> Optional[ReminderSchedule]:
        return next((r for r in self._reminders if r.id == reminder_id), None)

    def add_reminder(self, hour: int, minute: int) -> ReminderSchedule:
        _validate_time(hour, minute)
        reminder = ReminderSchedule(hour=hour, minute=minute)
        self._reminders.append(reminder)
        self._changed()
        return reminder

    def remove_reminder(self, reminder_id: str) -> None:
        index = next((i for i, r in enumerate(self._reminders) if r.id == reminder_id), None)
        if index is not None:
            self.remove_at(index)

    def remove_at(self, index: int) -> None:
        if not 0 <= index < len(self._reminders):
            return
        del self._reminders[index]
        self._changed()

    def toggle_reminder(self, reminder_id: str) -> Optional[ReminderSchedule]:
        reminder = self.get(reminder_id)
        if reminder is None:
            return None
        reminder.enabled = not reminder.enabled
        self._changed()
        return reminder

    def set_days(self, reminder_id: str, days: Iterable[int]) -> Optional[ReminderSchedule]:
        days = sorted(set(int(day) for day in days))
        if any(day < 1 or day > 7 for day in days):
            raise ValueError(f"Дни недели задаются числами 1-7, получено {days}")
        reminder = self.get(reminder_id)
        if reminder is None:
            return None
        reminder.days = days
        self._changed()
        return reminder

    def _changed(self) -> None:
        self.save()
        for callback in list(self._listeners):
            callback(self.reminders)

    def save(self) -> bool:
        try:
            self.storage.put(REMINDERS_KEY, encode_reminders(self._reminders))
        except PersistenceError as exc:
            self.logger.error("Failed to save reminders: %s", exc)
            return False
        return True

    def load(self) -> bool:
        try:
            self._reminders = decode_reminders(self.storage.get(REMINDERS_KEY))
        except LoadFailed as exc:
            self.logger.error("Failed to load reminders: %s", exc)
            self._reminders = []
            return False
        return True
