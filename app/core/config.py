import secrets

from pydantic_settings import BaseSettings


def _generate_dev_secret() -> str:
    """Generate a random secret for local development only."""
    return secrets.token_hex(32)


class Settings(BaseSettings):
    # App
    app_name: str = "NoteForge"
    environment: str = "development"  # development, production
    log_level: str = ""  # DEBUG, INFO, WARNING, ERROR, CRITICAL (empty = auto based on environment)
    log_to_file: bool = True  # Enable file logging
    log_dir: str = ""  # empty = ./logs next to the app

    # Database (SQLite for local dev, PostgreSQL for production)
    database_url: str = "sqlite:///./noteforge.db"

    # JWT verification. Tokens are issued by the account service.
    secret_key: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Frontend
    frontend_url: str = "http://localhost:5173"

    # CORS (comma-separated origins, empty = local defaults)
    allowed_origins: str = ""

    # Generative AI endpoint (Gemini-style generateContent)
    ai_endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-pro:generateContent"
    ai_api_key: str = ""
    ai_model: str = "gemini-1.5-pro"
    ai_confidence: float = 0.95

    # Uploads
    upload_dir: str = "uploads"
    max_upload_size_mb: int = 100

    # Audio/video
    ffmpeg_binary: str = "ffmpeg"
    transcription_endpoint: str = ""  # empty = placeholder transcription
    transcription_api_key: str = ""

    # Rate limiting
    rate_limit_enabled: bool = True
    upload_rate_limit: str = "20/minute"

    # Audit logging
    audit_log_enabled: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

# Validate secret key
_KNOWN_WEAK_KEYS = {"your-secret-key-change-in-production", "changeme", "secret", ""}

if settings.secret_key in _KNOWN_WEAK_KEYS:
    if settings.environment == "production":
        raise RuntimeError(
            "SECRET_KEY is not set or uses a known weak default. "
            "Set a strong SECRET_KEY env var (e.g. `openssl rand -hex 32`)."
        )
    # Development: generate a random key so the app can start
    settings.secret_key = _generate_dev_secret()
