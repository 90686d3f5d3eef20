import json
import logging
import math
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from water_tracker.models import DailyGoal, ReminderSchedule, UserProfile, WaterIntakeEntry

WATER_INTAKES_KEY = "waterIntakes"
DAILY_GOAL_KEY = "dailyGoal"
USER_PROFILE_KEY = "userProfile"
REMINDERS_KEY = "waterReminders"


class PersistenceError(Exception):
    message = "Ошибка хранилища"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.message)
        self.detail = detail


class SaveFailed(PersistenceError):
    message = "Не удалось сохранить данные о воде"


class LoadFailed(PersistenceError):
    message = "Не удалось загрузить данные о воде"


class KeyValueStorage(ABC):
    #Порт хранилища: байты по строковому ключу, без транзакций.

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """Сохранить байты под ключом. При ошибке записи бросает SaveFailed."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Вернуть байты по ключу или None, если ключа нет."""


class InMemoryStorage(KeyValueStorage):

    def __init__(self) -> None:
        self.data: Dict[str, bytes] = {}

    def put(self, key: str, data: bytes) -> None:
        self.data[key] = bytes(data)

    def get(self, key: str) -> Optional[bytes]:
        return self.data.get(key)


class FileStorage(KeyValueStorage):
    #Один JSON-файл на ключ в базовой директории.

    def __init__(self, base_dir: str = "./data") -> None:
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(self.__class__.__name__)

    def _path_for(self, key: str) -> Path:
        path = (self.base_dir / f"{key}.json").resolve()
        # ключ не должен выводить за пределы base_dir
        if path.parent != self.base_dir:
            raise ValueError(f"Недопустимый ключ хранилища: {key}")
        return path

    def put(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as tmp:
                    tmp.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise SaveFailed(f"{key}: {exc}") from exc

    def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            self.logger.error("Storage read failed for %s: %s", key, exc)
            raise LoadFailed(f"{key}: {exc}") from exc


#Кодеки: JSON в UTF-8.

def _dump(value: Any) -> bytes:
    try:
        return json.dumps(value, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SaveFailed(str(exc)) from exc


def _load(data: bytes) -> Any:
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise LoadFailed(str(exc)) from exc


def encode_entries(entries: List[WaterIntakeEntry]) -> bytes:
    return _dump([entry.to_dict() for entry in entries])


def decode_entries(data: Optional[bytes]) -> List[WaterIntakeEntry]:
    if data is None:
        return []
    raw = _load(data)
    if not isinstance(raw, list):
        raise LoadFailed("waterIntakes: ожидался список")
    try:
        entries = [WaterIntakeEntry.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError) as exc:
        raise LoadFailed(f"waterIntakes: {exc}") from exc
    for entry in entries:
        if entry.timestamp.tzinfo is not None:
            # время с зоной приводим к локальному наивному, как у datetime.now
            entry.timestamp = entry.timestamp.astimezone().replace(tzinfo=None)
    # записи с неположительным или бесконечным объемом не принимаем даже из хранилища
    return [entry for entry in entries if math.isfinite(entry.amount) and entry.amount > 0]


def encode_goal(goal: DailyGoal) -> bytes:
    return _dump(goal.to_dict())


def decode_goal(data: Optional[bytes]) -> DailyGoal:
    if data is None:
        return DailyGoal()
    try:
        goal = DailyGoal.from_dict(_load(data))
    except (KeyError, TypeError, ValueError) as exc:
        raise LoadFailed(f"dailyGoal: {exc}") from exc
    if not math.isfinite(goal.target) or goal.target < 0:
        raise LoadFailed(f"dailyGoal: недопустимая цель {goal.target}")
    return goal


def encode_profile(profile: UserProfile) -> bytes:
    return _dump(profile.to_dict())


def decode_profile(data: Optional[bytes]) -> UserProfile:
    if data is None:
        return UserProfile()
    try:
        return UserProfile.from_dict(_load(data))
    except (KeyError, TypeError, ValueError) as exc:
        raise LoadFailed(f"userProfile: {exc}") from exc


def encode_reminders(reminders: List[ReminderSchedule]) -> bytes:
    return _dump([reminder.to_dict() for reminder in reminders])


def decode_reminders(data: Optional[bytes]) -> List[ReminderSchedule]:
    if data is None:
        return []
    raw = _load(data)
    if not isinstance(raw, list):
        raise LoadFailed("waterReminders: ожидался список")
    try:
        return [ReminderSchedule.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError) as exc:
        raise LoadFailed(f"waterReminders: {exc}") from exc
