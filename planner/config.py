import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
TEMPLATE_SOURCES = {"notion", "static"}
DATABASE_ENV = {
    "body_groups_db": "NOTION_BODY_GROUPS_DB",
    "exercises_db": "NOTION_EXERCISES_DB",
    "templates_db": "NOTION_TEMPLATES_DB",
    "template_exercises_db": "NOTION_TEMPLATE_EXERCISES_DB",
    "weekly_workout_db": "NOTION_WEEKLY_WORKOUT_DB",
    "daily_workouts_db": "NOTION_DAILY_WORKOUTS_DB",
}


@dataclass(frozen=True)
class Settings:
    notion_api_key: str = ""
    body_groups_db: str = ""
    exercises_db: str = ""
    templates_db: str = ""
    template_exercises_db: str = ""
    weekly_workout_db: str = ""
    daily_workouts_db: str = ""
    notion_api_url: str = NOTION_API_URL
    notion_version: str = NOTION_VERSION
    request_timeout: float = 30.0
    template_source: str = "static"
    workout_start_time: str = "07:00"
    log_level: str = "INFO"

    def database(self, name: str) -> str:
        """Return the configured database id for a collection attribute, e.g. ``exercises_db``."""
        value = getattr(self, name, "")
        if not value:
            raise ConfigurationError(f"Missing {DATABASE_ENV.get(name, name.upper())}.")
        return value


def _timeout(raw: str | None) -> float:
    try:
        n = float(raw) if raw else 30.0
    except ValueError:
        return 30.0
    return n if n > 0 else 30.0


def load_settings() -> Settings:
    templates_db = os.getenv("NOTION_TEMPLATES_DB", "")
    source = os.getenv("TEMPLATE_SOURCE", "").strip().lower()
    if source not in TEMPLATE_SOURCES:
        source = "notion" if templates_db else "static"
    return Settings(
        notion_api_key=os.getenv("NOTION_API_KEY", ""),
        **{attr: os.getenv(env, "") for attr, env in DATABASE_ENV.items()},
        notion_api_url=os.getenv("NOTION_API_URL", NOTION_API_URL).rstrip("/"),
        notion_version=os.getenv("NOTION_VERSION", NOTION_VERSION),
        request_timeout=_timeout(os.getenv("NOTION_TIMEOUT")),
        template_source=source,
        workout_start_time=os.getenv("WORKOUT_START_TIME", "07:00"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
