import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./carebook.db")

# "development" echoes debug affordances (completion OTP, error detail) in responses
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
IS_DEVELOPMENT = ENVIRONMENT == "development"

# Firebase Configuration (ID token verification + Cloud Messaging)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH")

# Twilio Configuration (completion OTP delivery)
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER")

# Booking rules
# Wall-clock booking times are interpreted in this zone
SERVICE_TIMEZONE = os.getenv("SERVICE_TIMEZONE", "Asia/Kolkata")
CANCELLATION_CUTOFF_HOURS = float(os.getenv("CANCELLATION_CUTOFF_HOURS", "4"))
COMPLETION_OTP_TTL_MINUTES = int(os.getenv("COMPLETION_OTP_TTL_MINUTES", "10"))
COMPLETION_OTP_MAX_ATTEMPTS = int(os.getenv("COMPLETION_OTP_MAX_ATTEMPTS", "5"))
QR_TOKEN_TTL_HOURS = int(os.getenv("QR_TOKEN_TTL_HOURS", "24"))

# Upper bound for handing a notification to the queue
NOTIFICATION_ENQUEUE_TIMEOUT = float(os.getenv("NOTIFICATION_ENQUEUE_TIMEOUT", "5"))

# Push notification appearance
ANDROID_CHANNEL_ID = os.getenv("ANDROID_CHANNEL_ID", "carebook_notifications")
ANDROID_NOTIFICATION_COLOR = os.getenv("ANDROID_NOTIFICATION_COLOR", "#E23744")

CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "₹")

# CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:8081").split(",")
