from typing import List, Optional

from water_tracker.models import (
    ActivityLevel,
    DayTotal,
    Gender,
    ReminderSchedule,
    Timeframe,
    UserProfile,
    WaterIntakeEntry,
)
from water_tracker.services.calculations import progress_percent, remaining_ml

ACTIVITY_LABELS = {
    ActivityLevel.SEDENTARY: "Сидячий образ жизни",
    ActivityLevel.LIGHT: "Легкая активность",
    ActivityLevel.MODERATE: "Умеренная активность",
    ActivityLevel.ACTIVE: "Высокая активность",
    ActivityLevel.EXTREME: "Очень высокая активность",
}

GENDER_LABELS = {
    Gender.MALE: "Мужской",
    Gender.FEMALE: "Женский",
    Gender.UNSPECIFIED: "Не указан",
}

TIMEFRAME_LABELS = {
    Timeframe.WEEK: "неделю",
    Timeframe.MONTH: "месяц",
    Timeframe.YEAR: "год",
}

WEEKDAY_LABELS = {1: "Вс", 2: "Пн", 3: "Вт", 4: "Ср", 5: "Чт", 6: "Пт", 7: "Сб"}


def format_progress(today_total: float, goal: float, progress: float) -> str:
    parts = [
        "Прогресс за сегодня:",
        f"- Выпито: {today_total:.0f} мл из {goal:.0f} мл ({progress_percent(today_total, goal)}%).",
        f"- Осталось: {remaining_ml(today_total, goal):.0f} мл.",
    ]
    if progress >= 1.0:
        parts.append("Цель на сегодня выполнена!")
    return "\n".join(parts)


def format_entries(entries: List[WaterIntakeEntry]) -> str:
    if not entries:
        return "Сегодня записей пока нет."
    lines = ["Записи за сегодня:"]
    for position, entry in enumerate(entries, start=1):
        lines.append(f"{position}. {entry.timestamp:%H:%M} — {entry.amount:.0f} мл")
    return "\n".join(lines)


def format_best_day(best: Optional[DayTotal]) -> str:
    if best is None:
        return "нет данных"
    return f"{best.day:%d.%m.%Y} — {best.total:.0f} мл"


def format_stats(timeframe: Timeframe, average: float, rate: float, best: Optional[DayTotal]) -> str:
    return "\n".join(
        [
            f"Статистика за {TIMEFRAME_LABELS[timeframe]}:",
            f"- Среднее в день: {average:.0f} мл.",
            f"- Цель выполнена: {int(round(rate * 100))}% дней.",
            f"- Лучший день: {format_best_day(best)}.",
        ]
    )


def format_profile(profile: UserProfile, recommended: float) -> str:
    return "\n".join(
        [
            "Профиль:",
            f"- Возраст: {profile.age} лет.",
            f"- Вес: {profile.weight:.0f} кг.",
            f"- Рост: {profile.height:.0f} см.",
            f"- Пол: {GENDER_LABELS[profile.gender]}.",
            f"- Активность: {ACTIVITY_LABELS[profile.activity_level]}.",
            f"Рекомендуемая норма воды: {recommended:.0f} мл в день.",
        ]
    )


def format_reminder(reminder: ReminderSchedule) -> str:
    status = "вкл" if reminder.enabled else "выкл"
    if sorted(reminder.days) == [1, 2, 3, 4, 5, 6, 7]:
        days = "каждый день"
    else:
        days = ", ".join(WEEKDAY_LABELS[day] for day in sorted(reminder.days)) or "дни не выбраны"
    return f"{reminder.formatted_time} ({days}, {status})"


def format_reminders(reminders: List[ReminderSchedule]) -> str:
    if not reminders:
        return "Напоминаний нет. Добавьте: /remind 09:30"
    lines = ["Напоминания:"]
    for position, reminder in enumerate(reminders, start=1):
        lines.append(f"{position}. {format_reminder(reminder)}")
    return "\n".join(lines)
