import os
from dotenv import load_dotenv
from pathlib import Path

# Go up one level from newsfeed/ to root/
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# LLM analysis (optional; without a key the deterministic path is used)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# News providers
NEWS_API_KEY = os.getenv("NEWS_API_KEY", "")
NEWS_API_BASE_URL = os.getenv("NEWS_API_BASE_URL", "https://newsapi.org/v2")
GNEWS_API_KEY = os.getenv("GNEWS_API_KEY", "")
GNEWS_API_BASE_URL = os.getenv("GNEWS_API_BASE_URL", "https://gnews.io/api/v4")
REQUESTS_TIMEOUT = float(os.getenv("REQUESTS_TIMEOUT", "15"))

DEFAULT_COUNTRY = os.getenv("DEFAULT_COUNTRY", "us")
DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "en")
DEFAULT_CATEGORIES = [
    c.strip()
    for c in os.getenv(
        "DEFAULT_CATEGORIES",
        "general,business,technology,science,health,entertainment,sports,politics",
    ).split(",")
    if c.strip()
]
MAX_ARTICLES_PER_REQUEST = int(os.getenv("MAX_ARTICLES_PER_REQUEST", "100"))

# Scheduling
TIMEZONE = os.getenv("TIMEZONE", "America/New_York")
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1").lower() in ("1", "true", "yes")
UPDATE_INTERVAL_MINUTES = int(os.getenv("UPDATE_INTERVAL_MINUTES", "30"))
CLEANUP_HOUR = int(os.getenv("CLEANUP_HOUR", "3"))

# Refresh / analysis pacing
ANALYSIS_BATCH_SIZE = int(os.getenv("ANALYSIS_BATCH_SIZE", "10"))
ANALYSIS_BATCH_DELAY_SECONDS = float(os.getenv("ANALYSIS_BATCH_DELAY_SECONDS", "1.0"))
REANALYZE_AFTER_HOURS = int(os.getenv("REANALYZE_AFTER_HOURS", "12"))

# Storage
DB_URL = os.getenv("DB_URL", "sqlite:///newsfeed.db")
RETENTION_DAYS = int(os.getenv("RETENTION_DAYS", "30"))
HISTORY_CAP = int(os.getenv("HISTORY_CAP", "100"))

# Optional JSON file overriding keyword dictionaries / source ratings
RANKING_CONFIG_PATH = os.getenv("RANKING_CONFIG_PATH", "")
