import logging
import time

from telegram import Update
from telegram.error import NetworkError
from telegram.ext import Application

from water_tracker.bot.handlers import BotHandlers
from water_tracker.bot.scheduler import ReminderScheduler
from water_tracker.config import Config
from water_tracker.services.intake_store import WaterIntakeStore
from water_tracker.services.plotter import ProgressPlotter
from water_tracker.services.profile_store import ProfileStore
from water_tracker.services.reminders import ReminderStore
from water_tracker.services.storage import FileStorage

logger = logging.getLogger(__name__)


def announce_intake(amount: float) -> None:
    # событие "WaterIntakeAdded" для внешних подписчиков
    logger.info("WaterIntakeAdded amount=%.0f ml", amount)


def build_application(config: Config) -> Application:
    storage = FileStorage(config.data_dir)
    store = WaterIntakeStore(storage)
    store.add_entry_listener(announce_intake)
    profiles = ProfileStore(storage)
    reminders = ReminderStore(storage)
    scheduler = ReminderScheduler(reminders, chat_id=config.default_chat_id, tz=config.tzinfo)
    plotter = ProgressPlotter()
    handlers = BotHandlers(
        store=store,
        profiles=profiles,
        reminders=reminders,
        scheduler=scheduler,
        plotter=plotter,
        debug=config.debug,
    )

    application = (
        Application.builder()
        .token(config.bot_token)
        .connect_timeout(20)
        .read_timeout(60)
        .write_timeout(60)
        .pool_timeout(20)
        .get_updates_connect_timeout(20)
        .get_updates_read_timeout(60)
        .get_updates_write_timeout(60)
        .get_updates_pool_timeout(20)
        .build()
    )
    # Ошибки сети не должны валить приложение
    async def on_error(update, context):
        if context.error:
            logging.getLogger("bot.error").warning("Network/handler error: %s", context.error)
    application.add_error_handler(on_error)
    handlers.register(application)
    scheduler.attach(application.job_queue)
    return application


def main() -> None:
    config = Config.from_env()
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        level=getattr(logging, config.log_level, logging.INFO),
    )
    # Глушим шум httpx (чтобы токен не светился в URL логах)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpx").propagate = False
    use_webhook = bool(config.webhook_url)

    while True:
        application = build_application(config)
        try:
            if use_webhook:
                application.run_webhook(
                    listen="0.0.0.0",
                    port=config.webhook_port or 8443,
                    url_path=config.webhook_path,
                    webhook_url=(config.webhook_url.rstrip("/") + config.webhook_path),
                    drop_pending_updates=True,
                    allowed_updates=Update.ALL_TYPES,
                    stop_signals=None,
                )
                logging.getLogger("bot.error").warning("run_webhook завершился, перезапускаю...")
            else:
                application.run_polling(
                    allowed_updates=Update.ALL_TYPES,
                    timeout=10,
                    drop_pending_updates=True,
                    stop_signals=None,
                )
                logging.getLogger("bot.error").warning("run_polling завершился без исключения, перезапускаю...")
        except KeyboardInterrupt:
            raise
        except NetworkError as exc:
            logging.getLogger("bot.error").warning("Network error, retrying: %s", exc)
            time.sleep(3)
        except Exception as exc:  # защита от неожиданных падений
            logging.getLogger("bot.error").exception("Unexpected error, restarting: %s", exc)
            time.sleep(3)
        # маленькая пауза перед новым циклом, чтобы не спамить запросами при проблемах сети
        time.sleep(2)


if __name__ == "__main__":
    main()
