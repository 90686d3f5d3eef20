import datetime as dt
import logging
from typing import Optional
from zoneinfo import ZoneInfo

from telegram.ext import ContextTypes, JobQueue

from water_tracker.config import DEFAULT_TIMEZONE
from water_tracker.services.reminders import ReminderStore

REMINDER_TEXT = "Пора выпить воды!"


class ReminderScheduler:
    #Переводит расписание напоминаний в ежедневные задачи JobQueue.

    JOB_PREFIX = "water-reminder-"

    def __init__(
        self,
        reminders: ReminderStore,
        chat_id: Optional[int] = None,
        tz: Optional[dt.tzinfo] = None,
    ) -> None:
        self.reminders = reminders
        self.chat_id = chat_id
        # IANA-зона, смещение меняется вместе с летним временем
        self.tz = tz or ZoneInfo(DEFAULT_TIMEZONE)
        self.job_queue: Optional[JobQueue] = None
        self.logger = logging.getLogger(self.__class__.__name__)
        reminders.subscribe(lambda _: self.reschedule())

    def attach(self, job_queue: Optional[JobQueue]) -> None:
        if job_queue is None:
            self.logger.warning("JobQueue недоступна, напоминания отключены (нужен python-telegram-bot[job-queue])")
            return
        self.job_queue = job_queue
        self.reschedule()

    def set_chat(self, chat_id: int) -> None:
        if chat_id != self.chat_id:
            self.chat_id = chat_id
            self.reschedule()

    def reschedule(self) -> int:
        if self.job_queue is None:
            return 0
        for job in self.job_queue.jobs():
            if job.name and job.name.startswith(self.JOB_PREFIX):
                job.schedule_removal()
        if self.chat_id is None:
            self.logger.info("Чат для напоминаний не задан, задачи не запланированы")
            return 0

        scheduled = 0
        for reminder in self.reminders.reminders:
            if not reminder.enabled or not reminder.days:
                continue
            # 1 = воскресенье, а в JobQueue воскресенье = 0
            self.job_queue.run_daily(
                self.send_reminder,
                time=dt.time(reminder.hour, reminder.minute, tzinfo=self.tz),
                days=tuple(day - 1 for day in sorted(reminder.days)),
                chat_id=self.chat_id,
                name=f"{self.JOB_PREFIX}{reminder.id}",
            )
            scheduled += 1
        self.logger.info("Scheduled %s reminder(s)", scheduled)
        return scheduled

    async def send_reminder(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        await context.bot.send_message(chat_id=context.job.chat_id, text=REMINDER_TEXT)
