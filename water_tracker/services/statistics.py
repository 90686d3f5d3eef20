import calendar
import datetime as dt
from typing import Dict, Iterable, List, Optional

from water_tracker.models import DayTotal, Timeframe, WaterIntakeEntry


def _months_back(moment: dt.datetime, months: int) -> dt.datetime:
    #Сдвиг на N календарных месяцев назад; 31 марта -> 28/29 февраля.
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def window_start(timeframe: Timeframe, now: dt.datetime) -> dt.datetime:
    starts = {
        Timeframe.WEEK: now - dt.timedelta(days=7),
        Timeframe.MONTH: _months_back(now, 1),
        Timeframe.YEAR: _months_back(now, 12),
    }
    return starts[timeframe]


def filter_entries(
    entries: Iterable[WaterIntakeEntry], timeframe: Timeframe, now: dt.datetime
) -> List[WaterIntakeEntry]:
    start = window_start(timeframe, now)
    return [entry for entry in entries if start <= entry.timestamp <= now]


def group_by_day(entries: Iterable[WaterIntakeEntry]) -> Dict[dt.date, float]:
    totals: Dict[dt.date, float] = {}
    for entry in entries:
        day = entry.timestamp.date()
        totals[day] = totals.get(day, 0.0) + entry.amount
    return totals


def daily_totals(entries: Iterable[WaterIntakeEntry]) -> List[DayTotal]:
    totals = group_by_day(entries)
    return [DayTotal(day=day, total=totals[day]) for day in sorted(totals)]


def average_intake(entries: Iterable[WaterIntakeEntry]) -> float:
    #Среднее только по дням, где есть хотя бы одна запись.
    totals = group_by_day(entries)
    return sum(totals.values()) / max(len(totals), 1)


def achievement_rate(entries: Iterable[WaterIntakeEntry], target: float) -> float:
    totals = group_by_day(entries)
    if not totals:
        return 0.0
    achieved = sum(1 for total in totals.values() if total >= target)
    return achieved / len(totals)


def best_day(entries: Iterable[WaterIntakeEntry]) -> Optional[DayTotal]:
    best: Optional[DayTotal] = None
    for day, total in group_by_day(entries).items():
        if best is None or total > best.total:
            best = DayTotal(day=day, total=total)
    return best
