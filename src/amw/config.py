import os
from pathlib import Path

BASE = Path(os.getenv("AMW_HOME", "."))
DATA_DIR = BASE / "data"
CATALOG_PATH = Path(os.getenv("AMW_CATALOG_PATH", str(DATA_DIR / "items.json")))
DB_PATH = Path(os.getenv("AMW_DB_PATH", str(DATA_DIR / "amw.sqlite3")))

# west | east | europe
SERVER = os.getenv("AMW_SERVER", "europe")
BASE_URL = f"https://{SERVER}.albion-online-data.com/api/v2"

LOCATIONS = ["Thetford", "Martlock", "Lymhurst", "Caerleon", "Bridgewatch", "FortSterling"]
QUALITIES: list[int] = []

# The feed reports the Black Market either by name or by location code
NEUTRAL_HUB_NAME = "Black Market"
NEUTRAL_HUB_CODE = 301

LOCALE = os.getenv("AMW_LOCALE", "FR-FR")
SEARCH_LIMIT = 10

MAX_WORKERS = int(os.getenv("AMW_MAX_WORKERS", "4"))
RATE_LIMIT_PER_MIN = int(os.getenv("AMW_RATE_LIMIT_PER_MIN", "180"))
RETRIES = 3
TIMEOUT = float(os.getenv("AMW_TIMEOUT", "10"))

ALLOW_DUPLICATE_WATCHLIST = os.getenv("AMW_ALLOW_DUPLICATES", "true").lower() == "true"
