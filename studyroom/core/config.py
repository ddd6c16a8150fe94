import os

# PostgreSQL settings
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
POSTGRES_DB = os.getenv("POSTGRES_DB", "studyroom")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "db")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
DEBUG = ENVIRONMENT in ["development", "dev"]

# Database retry settings
DB_RETRY_ATTEMPTS = int(os.getenv("DB_RETRY_ATTEMPTS", "3"))
DB_RETRY_DELAY = float(os.getenv("DB_RETRY_DELAY", "1.0"))
DB_RETRY_BACKOFF_FACTOR = float(os.getenv("DB_RETRY_BACKOFF_FACTOR", "2.0"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if not DEBUG else "text")

# Application
APP_NAME = os.getenv("APP_NAME", "Study Room Attendance API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Admin tokens are issued by the external identity provider
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Civil time: every "today" and every "HH:mm" comparison uses this zone
CIVIL_TIMEZONE = os.getenv("CIVIL_TIMEZONE", "Asia/Seoul")

# Attendance rules
BATCH_OPERATION_LIMIT = int(os.getenv("BATCH_OPERATION_LIMIT", "500"))
RESPONSE_WINDOW_MINUTES = int(os.getenv("RESPONSE_WINDOW_MINUTES", "30"))
GRACE_PERIOD_MINUTES = int(os.getenv("GRACE_PERIOD_MINUTES", "5"))
PIN_MAX_FAILED_ATTEMPTS = int(os.getenv("PIN_MAX_FAILED_ATTEMPTS", "5"))
START_TIME_LOOKBACK_MINUTES = int(os.getenv("START_TIME_LOOKBACK_MINUTES", "0"))

# Check links
CHECK_LINK_BASE_URL = os.getenv(
    "CHECK_LINK_BASE_URL", "https://studyroom-attendance.web.app"
)

# Scheduled jobs (crontab syntax, evaluated in CIVIL_TIMEZONE)
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
GENERATION_CRON = os.getenv("GENERATION_CRON", "0 2 * * *")
START_TIME_CRON = os.getenv("START_TIME_CRON", "0,30 9-23 * * *")
GRACE_PERIOD_CRON = os.getenv("GRACE_PERIOD_CRON", "*/10 * * * *")

# Per-run budgets in seconds
GENERATION_TIMEOUT = int(os.getenv("GENERATION_TIMEOUT", "540"))
START_TIME_TIMEOUT = int(os.getenv("START_TIME_TIMEOUT", "60"))
GRACE_PERIOD_TIMEOUT = int(os.getenv("GRACE_PERIOD_TIMEOUT", "120"))


def validate_config():
    """Validate settings at startup"""
    errors = []

    if not JWT_SECRET_KEY:
        errors.append("JWT_SECRET_KEY is required")

    if not DATABASE_URL:
        errors.append("DATABASE_URL is required")

    if DB_RETRY_ATTEMPTS < 1:
        errors.append("DB_RETRY_ATTEMPTS must be >= 1")

    if DB_RETRY_DELAY < 0:
        errors.append("DB_RETRY_DELAY must be >= 0")

    if not 1 <= BATCH_OPERATION_LIMIT <= 500:
        errors.append("BATCH_OPERATION_LIMIT must be between 1 and 500")

    if PIN_MAX_FAILED_ATTEMPTS < 1:
        errors.append("PIN_MAX_FAILED_ATTEMPTS must be >= 1")

    if START_TIME_LOOKBACK_MINUTES < 0:
        errors.append("START_TIME_LOOKBACK_MINUTES must be >= 0")

    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")


# Optional import-time check
if os.getenv("VALIDATE_CONFIG_ON_IMPORT", "true").lower() == "true":
    try:
        validate_config()
    except ValueError as e:
        print(f"⚠️  Configuration warning: {e}")
