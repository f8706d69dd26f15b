import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")

# Opening windows per period, "PERIOD=HH:MM-HH:MM" pairs separated by commas.
# Per-weekday overrides live in the clinic_time_slots table.
CLINIC_HOURS = os.getenv(
    "CLINIC_HOURS",
    "MORNING=09:00-12:00,AFTERNOON=14:00-18:00,EVENING=18:00-20:00",
)

# Weekdays with no opening hours at all (comma separated, e.g. "SATURDAY,SUNDAY")
CLOSED_WEEKDAYS = [
    day.strip().upper() for day in os.getenv("CLOSED_WEEKDAYS", "SUNDAY").split(",") if day.strip()
]

# Step between candidate start times. Services have heterogeneous durations, so
# this is independent of any service's duration.
SLOT_GRANULARITY_MINUTES = int(os.getenv("SLOT_GRANULARITY_MINUTES", "30"))

# Admission serialization
ADMISSION_LOCK_TIMEOUT_SECONDS = float(os.getenv("ADMISSION_LOCK_TIMEOUT_SECONDS", "10"))
ADMISSION_RETRY_BACKOFF_SECONDS = float(os.getenv("ADMISSION_RETRY_BACKOFF_SECONDS", "0.2"))

# Frontend / CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
