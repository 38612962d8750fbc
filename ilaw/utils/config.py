# ilaw/utils/config.py
import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env file before defining settings
load_dotenv()

class Settings(BaseSettings):
    # --- Database ---
    # SQLite (aiosqlite) for local runs; use postgresql+asyncpg://... in deployment
    database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./ilaw.db")
    database_echo: bool = False  # Set to True to see SQL queries

    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_file: str | None = os.getenv("LOG_FILE")  # also log to this file when set

    # --- CORS ---
    frontend_origin: str = os.getenv("FRONTEND_URL", "*")

    # --- Quiz session grouping ---
    # Attempts further apart than this start a new quiz session
    session_gap_sec: int = 120

    # Score bands for colored quiz indicators
    quiz_band_high_threshold: int = 80
    quiz_band_medium_threshold: int = 50

    # --- Dashboard stats ---
    default_avg_reading_minutes: int = 25

    # --- Badges ---
    default_completion_threshold: int = 100
    badge_icon_width: int = 64
    cloudinary_cloud_name: str | None = os.getenv("CLOUDINARY_CLOUD_NAME")

settings = Settings()

if settings.session_gap_sec <= 0:
    raise ValueError("SESSION_GAP_SEC must be a positive number of seconds")
if not settings.quiz_band_medium_threshold < settings.quiz_band_high_threshold:
    raise ValueError("QUIZ_BAND_MEDIUM_THRESHOLD must be lower than QUIZ_BAND_HIGH_THRESHOLD")
