import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./reservations.db")

# Slot hold configuration
# Hold window is fixed; there is no "extend hold" operation
HOLD_DURATION_SECONDS = int(os.getenv("HOLD_DURATION_SECONDS", "60"))
# Recovery sweep for holds whose deferred expiry job never ran
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "10"))
SWEEP_BATCH_SIZE = int(os.getenv("SWEEP_BATCH_SIZE", "200"))
# Expired/cancelled rows older than this are purged by the daily job
RESERVATION_RETENTION_DAYS = int(os.getenv("RESERVATION_RETENTION_DAYS", "30"))

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Appointments <noreply@example.com>")

# Twilio SMS Configuration
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER")  # E.164, e.g. +15551234567

# Frontend base URL, used in notification links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
