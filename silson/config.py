from dotenv import load_dotenv
import os

# Load .env into environment variables
load_dotenv()


def get_valid_api_keys() -> set[str]:
    keys = os.getenv("SILSON_API_KEYS", "")
    return {k.strip() for k in keys.split(",") if k.strip()}


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///silson_worksheets.db")


def get_sql_echo() -> bool:
    return os.getenv("SQL_ECHO", "0").lower() in ("1", "true", "yes")


def get_worksheet_ttl_hours() -> int:
    return int(os.getenv("WORKSHEET_TTL_HOURS", "24"))


def get_prune_interval_seconds() -> int:
    return int(os.getenv("PRUNE_INTERVAL_SECONDS", "3600"))


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def is_dev_mode() -> bool:
    # re-read the rule table on every access
    return os.getenv("DEV_MODE") == "1"
