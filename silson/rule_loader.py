import json
import logging
from pathlib import Path
from threading import Lock

from silson.config import is_dev_mode
from silson.model import RuleTable

logger = logging.getLogger(__name__)

# Path to JSON files
DATA_PATH = Path(__file__).resolve().parent / "data"
RULES_FILE = "generations.json"

# Module-level cache
_cached_table = None

# Lock to make cache thread-safe
_cache_lock = Lock()


def load_json(file_name: str):
    """Load a JSON file from the data folder."""
    file_path = DATA_PATH / file_name
    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def reset_cache():
    """Manually reset the rule table cache."""
    global _cached_table
    with _cache_lock:
        _cached_table = None


def _load_table():
    global _cached_table
    _cached_table = RuleTable.model_validate(load_json(RULES_FILE))
    logger.debug("Loaded generation rule table version %s", _cached_table.rules_version)


# --- Preload at import ---
with _cache_lock:
    _load_table()


# --- Public API ---
def get_rule_table() -> RuleTable:
    with _cache_lock:
        if is_dev_mode() or _cached_table is None:
            _load_table()
        return _cached_table
