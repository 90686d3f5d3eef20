import logging
from typing import List, Optional

from telegram import ReplyKeyboardMarkup, ReplyKeyboardRemove, Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from water_tracker.bot.formatters import (
    ACTIVITY_LABELS,
    TIMEFRAME_LABELS,
    format_entries,
    format_profile,
    format_progress,
    format_reminder,
    format_reminders,
    format_stats,
)
from water_tracker.bot.scheduler import ReminderScheduler
from water_tracker.bot.state import GoalState, ProfileState, WaterState
from water_tracker.models import ActivityLevel, Gender, ReminderSchedule, Timeframe, UserProfile
from water_tracker.services.calculations import (
    AMOUNT_PRESETS,
    GOAL_PRESETS,
    progress_percent,
    recommended_intake,
)
from water_tracker.services.intake_store import WaterIntakeStore
from water_tracker.services.plotter import ProgressPlotter
from water_tracker.services.profile_store import ProfileStore
from water_tracker.services.reminders import ReminderStore


class BotHandlers:

    TIMEFRAME_SYNONYMS = {
        "week": Timeframe.WEEK,
        "неделя": Timeframe.WEEK,
        "month": Timeframe.MONTH,
        "месяц": Timeframe.MONTH,
        "year": Timeframe.YEAR,
        "год": Timeframe.YEAR,
    }
    BUTTON_PATTERNS = {
        "water": r"Добавить воду",
        "today": r"Сегодня",
        "stats": r"Статистика",
        "plots": r"Графики",
        "profile": r"Настроить профиль",
        "goal": r"Цель",
        "reminders": r"Напоминания",
    }
    BUTTON_REGEX = r"^(Добавить воду|Сегодня|Статистика|Графики|Настроить профиль|Цель|Напоминания)$"

    def __init__(
        self,
        store: WaterIntakeStore,
        profiles: ProfileStore,
        reminders: ReminderStore,
        scheduler: ReminderScheduler,
        plotter: ProgressPlotter,
        debug: bool = False,
    ) -> None:
        self.store = store
        self.profiles = profiles
        self.reminders = reminders
        self.scheduler = scheduler
        self.plotter = plotter
        self.debug = debug
        self.logger = logging.getLogger(self.__class__.__name__)

    #Утилиты
    @staticmethod
    def parse_float(text: str) -> Optional[float]:
        try:
            return float(text.replace(",", ".").strip())
        except (AttributeError, TypeError, ValueError):
            return None

    @staticmethod
    def parse_position(text: str) -> Optional[int]:
        try:
            return int(text.strip())
        except (AttributeError, TypeError, ValueError):
            return None

    @staticmethod
    def parse_time(text: str) -> Optional[tuple]:
        raw = text.strip().replace(".", ":")
        hour_text, sep, minute_text = raw.partition(":")
        if not sep:
            return None
        try:
            hour, minute = int(hour_text), int(minute_text)
        except ValueError:
            return None
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            return None
        return hour, minute

    def parse_timeframe(self, args: List[str]) -> Optional[Timeframe]:
        if not args:
            return Timeframe.WEEK
        return self.TIMEFRAME_SYNONYMS.get(args[0].strip().lower())

    @staticmethod
    def parse_activity(text: str) -> Optional[ActivityLevel]:
        raw = text.strip().lower()
        levels = list(ActivityLevel)
        if raw.isdigit() and 1 <= int(raw) <= len(levels):
            return levels[int(raw) - 1]
        for level, label in ACTIVITY_LABELS.items():
            if raw in {label.lower(), level.value}:
                return level
        return None

    @staticmethod
    def parse_gender(text: str) -> Gender:
        raw = text.strip().lower()
        if raw.startswith("m") or raw.startswith("м"):
            return Gender.MALE
        if raw.startswith("f") or raw.startswith("ж"):
            return Gender.FEMALE
        return Gender.UNSPECIFIED

    @staticmethod
    def main_keyboard() -> ReplyKeyboardMarkup:
        return ReplyKeyboardMarkup(
            [
                ["Добавить воду", "Сегодня"],
                ["Статистика", "Графики"],
                ["Настроить профиль", "Цель"],
                ["Напоминания"],
            ],
            resize_keyboard=True,
        )

    @staticmethod
    def amount_keyboard() -> ReplyKeyboardMarkup:
        presets = [str(amount) for amount in AMOUNT_PRESETS]
        return ReplyKeyboardMarkup([presets[:4], presets[4:]], resize_keyboard=True)

    @staticmethod
    def goal_keyboard() -> ReplyKeyboardMarkup:
        return ReplyKeyboardMarkup([[str(goal) for goal in GOAL_PRESETS]], resize_keyboard=True)

    @staticmethod
    def activity_keyboard() -> ReplyKeyboardMarkup:
        return ReplyKeyboardMarkup([[label] for label in ACTIVITY_LABELS.values()], resize_keyboard=True)

    @staticmethod
    async def require_no_profile(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
        if context.user_data.get("profile_in_progress"):
            if update.message:
                await update.message.reply_text("Сначала завершите настройку профиля или введите /cancel.")
            return True
        return False

    @property
    def button_filter(self):
        return filters.Regex(self.BUTTON_REGEX)

    def is_button(self, update: Update) -> bool:
        msg = update.message
        return bool(msg and msg.text and self.button_filter.filter(msg))

    def with_store_error(self, text: str) -> str:
        if self.store.error_message:
            return f"{text}\nВнимание: {self.store.error_message}."
        return text

    def progress_text(self) -> str:
        self.store.calculate_today_total()
        return format_progress(self.store.today_total, self.store.goal.target, self.store.daily_progress())

    def today_entry_id(self, position: Optional[int]) -> Optional[str]:
        entries = self.store.today_entries()
        if position is None or not 1 <= position <= len(entries):
            return None
        return entries[position - 1].id

    #Общие команды
    async def start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.effective_chat:
            self.scheduler.set_chat(update.effective_chat.id)
        await update.message.reply_text(
            "Привет! Я помогу следить за тем, сколько воды вы пьете.\n"
            "Записывайте воду через /log_water 250, смотрите день через /today,\n"
            "цель меняется через /set_goal, профиль через /set_profile.\n"
            "Статистика: /stats week|month|year. Напоминания: /remind 09:30.\n"
            "Можешь пользоваться кнопками ниже или командами. Подсказки: /help",
            reply_markup=self.main_keyboard(),
        )

    async def help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await update.message.reply_text(
            "Доступные команды:\n"
            "/log_water <мл> — записать воду.\n"
            "/today — записи и прогресс за сегодня.\n"
            "/edit <номер> <мл> — изменить объем записи из /today.\n"
            "/remove <номер> — удалить запись из /today.\n"
            "/set_goal <мл> — дневная цель.\n"
            "/set_profile — вес, рост, возраст, пол и активность.\n"
            "/profile — профиль и рекомендуемая норма.\n"
            "/use_recommended — сделать рекомендуемую норму целью.\n"
            "/stats [week|month|year] — средний объем, выполнение цели, лучший день.\n"
            "/plot_progress — график за сегодня.\n"
            "/plot_history [week|month|year] — график по дням.\n"
            "/remind ЧЧ:ММ — добавить напоминание.\n"
            "/reminders — список напоминаний.\n"
            "/toggle_reminder <номер>, /delete_reminder <номер> — управление напоминаниями.\n"
            "/cancel — выйти из текущего диалога.",
            reply_markup=self.main_keyboard(),
        )

    async def cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        context.user_data.pop("profile_draft", None)
        context.user_data["profile_in_progress"] = False
        await update.message.reply_text("Диалог отменен.", reply_markup=self.main_keyboard())
        return ConversationHandler.END

    #Вода
    async def record_water(self, update: Update, amount: float) -> None:
        self.store.add_entry(amount)
        await update.message.reply_text(
            self.with_store_error(f"Записано {amount:.0f} мл.\n{self.progress_text()}"),
            reply_markup=self.main_keyboard(),
        )

    async def log_water_entry(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        if await self.require_no_profile(update, context):
            return ConversationHandler.END
        if context.args:
            amount = self.parse_float(" ".join(context.args))
            if amount is None or amount <= 0:
                await update.message.reply_text(
                    "Укажите объем воды в мл, например: /log_water 300",
                    reply_markup=self.main_keyboard(),
                )
                return ConversationHandler.END
            await self.record_water(update, amount)
            return ConversationHandler.END

        await update.message.reply_text(
            "Сколько воды вы выпили? Выберите объем или введите число в мл.",
            reply_markup=self.amount_keyboard(),
        )
        return WaterState.AMOUNT

    async def log_water_amount(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        if self.is_button(update):
            await update.message.reply_text(
                "Сначала введите объем воды в мл или /cancel.",
                reply_markup=self.amount_keyboard(),
            )
            return WaterState.AMOUNT
        amount = self.parse_float(update.message.text)
        if amount is None or amount <= 0:
            await update.message.reply_text(
                "Введите объем воды в мл или /cancel.",
                reply_markup=self.amount_keyboard(),
            )
            return WaterState.AMOUNT
        await self.record_water(update, amount)
        return ConversationHandler.END

    async def today(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        progress = self.progress_text()
        message = update.effective_message
        if not message:
            return
        await message.reply_text(
            f"{format_entries(self.store.today_entries())}\n\n{progress}",
            reply_markup=self.main_keyboard(),
        )

    async def edit_entry(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        args = context.args or []
        if len(args) != 2:
            await update.message.reply_text("Формат: /edit <номер> <мл>, номер смотрите в /today.")
            return
        entry_id = self.today_entry_id(self.parse_position(args[0]))
        amount = self.parse_float(args[1])
        if entry_id is None:
            await update.message.reply_text("Нет записи с таким номером. Посмотрите /today.")
            return
        if amount is None or amount <= 0:
            await update.message.reply_text("Объем должен быть положительным числом в мл.")
            return
        self.store.update_entry_amount(entry_id, amount)
        await update.message.reply_text(
            self.with_store_error(f"Запись обновлена: {amount:.0f} мл.\n{self.progress_text()}"),
            reply_markup=self.main_keyboard(),
        )

    async def remove_entry(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        args = context.args or []
        entry_id = self.today_entry_id(self.parse_position(args[0])) if args else None
        if entry_id is None:
            await update.message.reply_text("Формат: /remove <номер>, номер смотрите в /today.")
            return
        self.store.remove_entry(entry_id)
        await update.message.reply_text(
            self.with_store_error(f"Запись удалена.\n{self.progress_text()}"),
            reply_markup=self.main_keyboard(),
        )

    #Цель
    async def apply_goal(self, update: Update, target: float) -> None:
        self.store.set_goal(target)
        await update.message.reply_text(
            self.with_store_error(f"Новая цель: {target:.0f} мл в день.\n{self.progress_text()}"),
            reply_markup=self.main_keyboard(),
        )

    async def set_goal_entry(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        if await self.require_no_profile(update, context):
            return ConversationHandler.END
        if context.args:
            target = self.parse_float(" ".join(context.args))
            if target is None or target <= 0:
                await update.message.reply_text("Укажите цель в мл, например: /set_goal 2500")
                return ConversationHandler.END
            await self.apply_goal(update, target)
            return ConversationHandler.END
        await update.message.reply_text(
            f"Текущая цель: {self.store.goal.target:.0f} мл. Выберите новую или введите число.",
            reply_markup=self.goal_keyboard(),
        )
        return GoalState.TARGET

    async def set_goal_amount(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        target = self.parse_float(update.message.text)
        if target is None or target <= 0:
            await update.message.reply_text("Введите цель в мл или /cancel.", reply_markup=self.goal_keyboard())
            return GoalState.TARGET
        await self.apply_goal(update, target)
        return ConversationHandler.END

    #Профиль
    async def set_profile_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        context.user_data["profile_draft"] = {}
        context.user_data["profile_in_progress"] = True
        await update.message.reply_text("Введите ваш вес (в кг):", reply_markup=ReplyKeyboardRemove())
        return ProfileState.WEIGHT

    async def set_weight(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        value = self.parse_float(update.message.text)
        if value is None or value < 20 or value > 400:
            await update.message.reply_text("Введите вес в кг (20-400).")
            return ProfileState.WEIGHT
        context.user_data["profile_draft"]["weight"] = value
        await update.message.reply_text("Введите ваш рост (в см):")
        return ProfileState.HEIGHT

    async def set_height(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        value = self.parse_float(update.message.text)
        if value is None or value < 100 or value > 250:
            await update.message.reply_text("Введите рост в см (100-250).")
            return ProfileState.HEIGHT
        context.user_data["profile_draft"]["height"] = value
        await update.message.reply_text("Введите ваш возраст:")
        return ProfileState.AGE

    async def set_age(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        value = self.parse_float(update.message.text)
        if value is None or value < 10 or value > 100:
            await update.message.reply_text("Введите возраст (10-100).")
            return ProfileState.AGE
        context.user_data["profile_draft"]["age"] = int(value)
        await update.message.reply_text("Ваш пол? Напишите m/f или пропустите любым другим текстом.")
        return ProfileState.GENDER

    async def set_gender(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        context.user_data["profile_draft"]["gender"] = self.parse_gender(update.message.text)
        await update.message.reply_text("Выберите уровень активности:", reply_markup=self.activity_keyboard())
        return ProfileState.ACTIVITY

    async def finish_profile(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        level = self.parse_activity(update.message.text or "")
        if level is None:
            await update.message.reply_text(
                "Выберите уровень активности кнопкой или числом 1-5.",
                reply_markup=self.activity_keyboard(),
            )
            return ProfileState.ACTIVITY

        draft = context.user_data.get("profile_draft", {})
        current = self.profiles.load()
        profile = UserProfile(
            weight=draft.get("weight", current.weight),
            height=draft.get("height", current.height),
            age=draft.get("age", current.age),
            gender=draft.get("gender", current.gender),
            activity_level=level,
        )
        context.user_data.pop("profile_draft", None)
        context.user_data["profile_in_progress"] = False
        if self.profiles.save(profile):
            text = (
                "Профиль обновлен.\n"
                f"{format_profile(profile, recommended_intake(profile))}\n"
                "Чтобы сделать ее целью, отправьте /use_recommended."
            )
        else:
            text = "Не удалось сохранить профиль, попробуйте еще раз."
        await update.message.reply_text(text, reply_markup=self.main_keyboard())
        return ConversationHandler.END

    async def show_profile(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        profile = self.profiles.load()
        await update.message.reply_text(
            format_profile(profile, self.profiles.recommended_goal()),
            reply_markup=self.main_keyboard(),
        )

    async def use_recommended(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if await self.require_no_profile(update, context):
            return
        await self.apply_goal(update, self.profiles.recommended_goal())

    #Статистика
    async def stats(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        timeframe = self.parse_timeframe(context.args or [])
        message = update.effective_message
        if not message:
            return
        if timeframe is None:
            await message.reply_text("Период: week, month или year. Например: /stats month")
            return
        text = format_stats(
            timeframe,
            self.store.average_intake(timeframe),
            self.store.achievement_rate(timeframe),
            self.store.best_day(timeframe),
        )
        await message.reply_text(text, reply_markup=self.main_keyboard())

    async def plot_progress(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if await self.require_no_profile(update, context):
            return
        self.store.calculate_today_total()
        img = self.plotter.build_plot(self.store.today_total, self.store.goal.target)
        message = update.effective_message
        if not message:
            return
        percent = progress_percent(self.store.today_total, self.store.goal.target)
        await message.reply_photo(
            photo=img,
            caption=f"Прогресс за сегодня: {percent}%.",
            reply_markup=self.main_keyboard(),
        )

    async def plot_history(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        timeframe = self.parse_timeframe(context.args or [])
        message = update.effective_message
        if not message:
            return
        if timeframe is None:
            await message.reply_text("Период: week, month или year. Например: /plot_history month")
            return
        days = self.store.daily_totals(timeframe)
        if not days:
            await message.reply_text("За этот период записей нет.", reply_markup=self.main_keyboard())
            return
        img = self.plotter.build_history_plot(
            days, self.store.goal.target, f"Вода по дням за {TIMEFRAME_LABELS[timeframe]}"
        )
        await message.reply_photo(photo=img, caption="Выпито по дням и цель.", reply_markup=self.main_keyboard())

    #Напоминания
    async def add_reminder(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        args = context.args or []
        parsed = self.parse_time(args[0]) if args else None
        if parsed is None:
            await update.message.reply_text("Укажите время, например: /remind 09:30")
            return
        if update.effective_chat:
            self.scheduler.set_chat(update.effective_chat.id)
        reminder = self.reminders.add_reminder(*parsed)
        await update.message.reply_text(
            f"Напоминание добавлено: {format_reminder(reminder)}.",
            reply_markup=self.main_keyboard(),
        )

    async def list_reminders(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        if not message:
            return
        await message.reply_text(format_reminders(self.reminders.reminders), reply_markup=self.main_keyboard())

    def reminder_at(self, args: List[str]) -> Optional[ReminderSchedule]:
        position = self.parse_position(args[0]) if args else None
        reminders = self.reminders.reminders
        if position is None or not 1 <= position <= len(reminders):
            return None
        return reminders[position - 1]

    async def toggle_reminder(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        reminder = self.reminder_at(context.args or [])
        if reminder is None:
            await update.message.reply_text("Формат: /toggle_reminder <номер>, номер смотрите в /reminders.")
            return
        reminder = self.reminders.toggle_reminder(reminder.id)
        await update.message.reply_text(f"Напоминание: {format_reminder(reminder)}.")

    async def delete_reminder(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        reminder = self.reminder_at(context.args or [])
        if reminder is None:
            await update.message.reply_text("Формат: /delete_reminder <номер>, номер смотрите в /reminders.")
            return
        self.reminders.remove_reminder(reminder.id)
        await update.message.reply_text(f"Напоминание на {reminder.formatted_time} удалено.")

    #Отладка
    async def reset(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        self.store.reset()
        self.logger.warning("Store reset by chat %s", update.effective_chat.id if update.effective_chat else None)
        await update.message.reply_text(
            self.with_store_error("Все записи удалены, цель сброшена до 2000 мл."),
            reply_markup=self.main_keyboard(),
        )

    #Регистрация хэндлеров
    def register(self, app: Application) -> None:
        text_input = filters.TEXT & ~filters.COMMAND & ~self.button_filter

        profile_conv = ConversationHandler(
            entry_points=[
                CommandHandler("set_profile", self.set_profile_start),
                MessageHandler(filters.TEXT & filters.Regex(f"^{self.BUTTON_PATTERNS['profile']}$"), self.set_profile_start),
            ],
            states={
                ProfileState.WEIGHT: [MessageHandler(text_input, self.set_weight)],
                ProfileState.HEIGHT: [MessageHandler(text_input, self.set_height)],
                ProfileState.AGE: [MessageHandler(text_input, self.set_age)],
                ProfileState.GENDER: [MessageHandler(text_input, self.set_gender)],
                ProfileState.ACTIVITY: [MessageHandler(text_input, self.finish_profile)],
            },
            fallbacks=[CommandHandler("cancel", self.cancel)],
            allow_reentry=True,
        )

        water_conv = ConversationHandler(
            entry_points=[
                CommandHandler("log_water", self.log_water_entry),
                MessageHandler(filters.TEXT & filters.Regex(f"^{self.BUTTON_PATTERNS['water']}$"), self.log_water_entry),
            ],
            states={
                WaterState.AMOUNT: [
                    MessageHandler(filters.TEXT & ~filters.COMMAND, self.log_water_amount),
                    CommandHandler("today", self.today),
                    MessageHandler(filters.COMMAND, self.cancel),
                ],
            },
            fallbacks=[CommandHandler("cancel", self.cancel)],
            allow_reentry=True,
        )

        goal_conv = ConversationHandler(
            entry_points=[
                CommandHandler("set_goal", self.set_goal_entry),
                MessageHandler(filters.TEXT & filters.Regex(f"^{self.BUTTON_PATTERNS['goal']}$"), self.set_goal_entry),
            ],
            states={
                GoalState.TARGET: [
                    MessageHandler(text_input, self.set_goal_amount),
                    MessageHandler(filters.COMMAND, self.cancel),
                ],
            },
            fallbacks=[CommandHandler("cancel", self.cancel)],
            allow_reentry=True,
        )

        app.add_handler(CommandHandler("start", self.start))
        app.add_handler(CommandHandler("help", self.help))
        app.add_handler(profile_conv)
        app.add_handler(water_conv)
        app.add_handler(goal_conv)
        app.add_handler(CommandHandler("today", self.today))
        app.add_handler(CommandHandler("edit", self.edit_entry))
        app.add_handler(CommandHandler("remove", self.remove_entry))
        app.add_handler(CommandHandler("profile", self.show_profile))
        app.add_handler(CommandHandler("use_recommended", self.use_recommended))
        app.add_handler(CommandHandler("stats", self.stats))
        app.add_handler(CommandHandler("plot_progress", self.plot_progress))
        app.add_handler(CommandHandler("plot_history", self.plot_history))
        app.add_handler(CommandHandler("remind", self.add_reminder))
        app.add_handler(CommandHandler("reminders", self.list_reminders))
        app.add_handler(CommandHandler("toggle_reminder", self.toggle_reminder))
        app.add_handler(CommandHandler("delete_reminder", self.delete_reminder))
        app.add_handler(CommandHandler("cancel", self.cancel))
        if self.debug:
            app.add_handler(CommandHandler("reset", self.reset))

        #Поддержка кнопок (текст без слэша) для простых команд
        app.add_handler(MessageHandler(filters.TEXT & filters.Regex(f"^{self.BUTTON_PATTERNS['today']}$"), self.today))
        app.add_handler(MessageHandler(filters.TEXT & filters.Regex(f"^{self.BUTTON_PATTERNS['stats']}$"), self.stats))
        app.add_handler(MessageHandler(filters.TEXT & filters.Regex(f"^{self.BUTTON_PATTERNS['plots']}$"), self.plot_progress))
        app.add_handler(
            MessageHandler(filters.TEXT & filters.Regex(f"^{self.BUTTON_PATTERNS['reminders']}$"), self.list_reminders)
        )
