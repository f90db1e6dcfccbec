"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or any("pytest" in str(frame) for frame in __import__('inspect').stack(0))

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # repository root
        pathlib.Path.cwd() / ".env",
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "postgresql://localhost/doctor_booking_dev"
    )

DATABASE_URL = get_database_url()
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Google Calendar integration
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_CALENDAR_WEBHOOK_URL = os.getenv(
    "GOOGLE_CALENDAR_WEBHOOK_URL",
    f"{API_BASE_URL}/api/webhooks/google-calendar"
)

# Authentication
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Fernet key for stored calendar credentials
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY", "")

# Shared secret for cron-invoked endpoints
CRON_SECRET = os.getenv("CRON_SECRET", "")

# Secret shared with the payment provider's webhook relay
PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET", "")
