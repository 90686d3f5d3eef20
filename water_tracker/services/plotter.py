from io import BytesIO
from typing import List

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from water_tracker.models import DayTotal  # noqa: E402


class ProgressPlotter:
    # Строит графики прогресса по воде.

    def build_plot(self, today_total: float, goal: float) -> BytesIO:
        goal = max(goal, 1)
        fig, ax = plt.subplots(figsize=(5, 4))
        fig.suptitle("Прогресс дня", fontsize=12)

        ax.bar(["Выпито", "Цель"], [today_total, goal], color=["#4ba3fa", "#9ecdfc"])
        ax.set_ylim(0, max(today_total, goal) * 1.2 + 1)
        ax.set_title("Вода (мл)")
        ax.grid(axis="y", alpha=0.2)
        self._strip_spines(ax)
        return self._render(fig)

    def build_history_plot(self, days: List[DayTotal], goal: float, title: str) -> BytesIO:
        fig, ax = plt.subplots(figsize=(10, 4))
        fig.suptitle(title, fontsize=12)

        labels = self.day_labels(days)
        totals = [day.total for day in days]
        colors = ["#4ba3fa" if total >= goal else "#9ecdfc" for total in totals]
        ax.bar(labels, totals, color=colors)
        ax.axhline(goal, color="#f18805", linestyle="--", linewidth=1, label=f"Цель {goal:.0f} мл")
        ax.set_ylim(0, max(totals + [goal]) * 1.2 + 1)
        ax.set_ylabel("мл")
        ax.grid(axis="y", alpha=0.2)
        ax.legend(loc="upper left")
        if len(labels) > 14:
            ax.tick_params(axis="x", labelrotation=90, labelsize=7)
        self._strip_spines(ax)
        return self._render(fig)

    @staticmethod
    def day_labels(days: List[DayTotal]) -> List[str]:
        # одна и та же дата с разницей в год не должна сливаться в один столбец
        fmt = "%d.%m"
        if days and (days[-1].day - days[0].day).days >= 365:
            fmt = "%d.%m.%y"
        return [day.day.strftime(fmt) for day in days]

    @staticmethod
    def _strip_spines(ax) -> None:
        for spine in ["top", "right"]:
            ax.spines[spine].set_visible(False)

    @staticmethod
    def _render(fig) -> BytesIO:
        buf = BytesIO()
        fig.tight_layout()
        fig.savefig(buf, format="png")
        plt.close(fig)
        buf.seek(0)
        return buf
