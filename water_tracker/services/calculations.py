import math

from water_tracker.models import ActivityLevel, UserProfile

ML_PER_KG = 30
GOAL_PRESETS = [1500, 2000, 2500, 3000]
AMOUNT_PRESETS = [100, 200, 250, 300, 500, 750, 1000]

ACTIVITY_COEFFICIENTS = {
    ActivityLevel.SEDENTARY: 0.8,
    ActivityLevel.LIGHT: 0.9,
    ActivityLevel.MODERATE: 1.0,
    ActivityLevel.ACTIVE: 1.1,
    ActivityLevel.EXTREME: 1.2,
}


def _round_to_hundred(value: float) -> float:
    #Округление до ближайших 100 мл, половина вверх.
    return float(math.floor(value / 100 + 0.5) * 100)


def recommended_intake(profile: UserProfile) -> float:
    #Норма воды: 30 мл на кг веса с поправкой на активность.
    #Пол и возраст в профиле хранятся, но в формулу не входят.
    base = profile.weight * ML_PER_KG
    return _round_to_hundred(base * ACTIVITY_COEFFICIENTS[profile.activity_level])


def progress_percent(total: float, target: float) -> int:
    #Процент без ограничения сверху: может быть больше 100.
    return int(round(total / max(target, 1.0) * 100))


def remaining_ml(total: float, target: float) -> float:
    return max(target - total, 0.0)
