import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")
    JWT_SECRET = os.getenv("JWT_SECRET", "hms-dev-only-jwt-signing-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # SQLite database file stored next to the app as hms.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "hms.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared counter/denylist store. Unset means the database store is used.
    REDIS_URL = os.getenv("REDIS_URL")

    # Browser clients (web dashboard) calling from another origin
    CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:3000")

    # Only honour X-Forwarded-For behind a trusted reverse proxy
    TRUST_PROXY_HEADERS = _env_bool("TRUST_PROXY_HEADERS")

    # Bearer tokens: 24 hours
    TOKEN_LIFETIME_SECONDS = int(os.getenv("TOKEN_LIFETIME_SECONDS", str(24 * 60 * 60)))

    # bcrypt cost factor
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Account lockout
    MAX_LOGIN_ATTEMPTS = 5
    LOCKOUT_MINUTES = 30

    # Rate limits: per IP on auth endpoints, per account elsewhere
    AUTH_RATE_WINDOW_SECONDS = 15 * 60
    AUTH_RATE_MAX_REQUESTS = 10
    API_RATE_WINDOW_SECONDS = 15 * 60
    API_RATE_MAX_REQUESTS = 100

    # TOTP second factor
    TOTP_ISSUER = os.getenv("TOTP_ISSUER", "HMS")
    TOTP_VALID_WINDOW = 2  # steps either side of now (±60s)

    # Password policy
    PASSWORD_MIN_LEN = 8
    PASSWORD_MAX_LEN = 72  # bcrypt input limit, in bytes
    PASSWORD_REQUIRE_UPPER = True
    PASSWORD_REQUIRE_LOWER = True
    PASSWORD_REQUIRE_DIGIT = True
    PASSWORD_REQUIRE_SYMBOL = True

    # Basic app settings
    DEBUG = False
