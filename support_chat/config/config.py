import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parents[2] / ".env")

CHAT_TOKEN_SECRET = os.getenv("CHAT_TOKEN_SECRET", "change-me")
CHAT_TOKEN_TTL_SECONDS = int(os.getenv("CHAT_TOKEN_TTL_SECONDS", "86400"))

# Backlog sent with joined_room
HISTORY_LIMIT = int(os.getenv("CHAT_HISTORY_LIMIT", "50"))

DEFAULT_PAGE_SIZE = int(os.getenv("CHAT_PAGE_SIZE", "50"))
MAX_PAGE_SIZE = int(os.getenv("CHAT_MAX_PAGE_SIZE", "100"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
