from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

DEFAULT_GOAL_ML = 2000.0
ALL_WEEKDAYS = [1, 2, 3, 4, 5, 6, 7]  # 1 = воскресенье, как в календаре iOS


def _new_id() -> str:
    return str(uuid.uuid4())


class Gender(Enum):
    MALE = "male"
    FEMALE = "female"
    UNSPECIFIED = "unspecified"


class ActivityLevel(Enum):
    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    EXTREME = "extreme"


class Timeframe(Enum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


@dataclass
class WaterIntakeEntry:
    amount: float  # мл
    timestamp: dt.datetime = field(default_factory=dt.datetime.now)
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "amount": self.amount, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WaterIntakeEntry":
        return cls(
            id=str(data["id"]),
            amount=float(data["amount"]),
            timestamp=dt.datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class DailyGoal:
    target: float = DEFAULT_GOAL_ML

    def to_dict(self) -> Dict[str, Any]:
        return {"target": self.target}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailyGoal":
        return cls(target=float(data["target"]))


@dataclass
class DayTotal:
    day: dt.date
    total: float


@dataclass
class UserProfile:
    weight: float = 70.0  # кг
    height: float = 170.0  # см
    age: int = 30
    gender: Gender = Gender.UNSPECIFIED
    activity_level: ActivityLevel = ActivityLevel.MODERATE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weight": self.weight,
            "height": self.height,
            "age": self.age,
            "gender": self.gender.value,
            "activityLevel": self.activity_level.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            weight=float(data["weight"]),
            height=float(data["height"]),
            age=int(data["age"]),
            gender=Gender(data["gender"]),
            activity_level=ActivityLevel(data["activityLevel"]),
        )


@dataclass
class ReminderSchedule:
    hour: int
    minute: int
    enabled: bool = True
    days: List[int] = field(default_factory=lambda: list(ALL_WEEKDAYS))
    id: str = field(default_factory=_new_id)

    @property
    def formatted_time(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hour": self.hour,
            "minute": self.minute,
            "isEnabled": self.enabled,
            "days": list(self.days),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReminderSchedule":
        return cls(
            id=str(data["id"]),
            hour=int(data["hour"]),
            minute=int(data["minute"]),
            enabled=bool(data["isEnabled"]),
            days=[int(day) for day in data["days"]],
        )
