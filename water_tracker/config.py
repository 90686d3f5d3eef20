import os
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "Europe/Moscow"


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Config:
    bot_token: str
    data_dir: str = "./data"
    default_chat_id: Optional[int] = None
    webhook_url: Optional[str] = None
    webhook_port: Optional[int] = None
    webhook_path: str = "/webhook"
    debug: bool = False
    log_level: str = "INFO"
    timezone: str = DEFAULT_TIMEZONE

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @staticmethod
    def from_env() -> "Config":
        token = os.getenv("BOT_TOKEN")
        if not token:
            raise RuntimeError("Укажите токен бота в переменной окружения BOT_TOKEN.")
        webhook_port = os.getenv("WEBHOOK_PORT")
        chat_id = os.getenv("DEFAULT_CHAT_ID")
        timezone = os.getenv("TIMEZONE", DEFAULT_TIMEZONE)
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise RuntimeError(f"Неизвестный часовой пояс в TIMEZONE: {timezone}") from exc
        return Config(
            bot_token=token,
            data_dir=os.getenv("DATA_DIR", "./data"),
            default_chat_id=int(chat_id) if chat_id else None,
            webhook_url=os.getenv("WEBHOOK_URL"),
            webhook_port=int(webhook_port) if webhook_port else None,
            webhook_path=os.getenv("WEBHOOK_PATH", "/webhook"),
            debug=_flag(os.getenv("DEBUG")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            timezone=timezone,
        )
