"""Settings read from the environment, plus the money rounding policy."""
import os
from datetime import datetime, timezone

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./settleup.db")
# Some hosts still hand out postgres:// URLs, which SQLAlchemy rejects.
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

_origins_env = os.getenv("ALLOWED_ORIGINS", "")
ALLOWED_ORIGINS = [o.strip() for o in _origins_env.split(",") if o.strip()] if _origins_env else ["*"]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ----- Money policy -----
AMOUNT_DECIMALS = 2
# Anything at or below one cent is treated as settled.
AMOUNT_EPSILON = 0.01
# Up to this many direct debts are suggested as-is instead of optimised.
DIRECT_SUGGESTION_LIMIT = 3
# Direct debts suggested when the group only owes itself in a circle.
CYCLE_BREAK_SUGGESTIONS = 2


def round_amount(value: float) -> float:
    return round(value, AMOUNT_DECIMALS)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
