import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/pharmacare.db")).resolve()
        self.session_secret = os.getenv("SESSION_SECRET", "change-me")
        self.session_cookie_name = os.getenv("SESSION_COOKIE_NAME", "pharmacare_session")
        self.session_max_age_seconds = self._get_int("SESSION_MAX_AGE_SECONDS", default=14 * 24 * 60 * 60)
        self.session_https_only = self._get_bool("SESSION_HTTPS_ONLY", default=False)
        self.otp_ttl_minutes = self._get_int("OTP_TTL_MINUTES", default=10)
        self.reset_token_ttl_minutes = self._get_int("RESET_TOKEN_TTL_MINUTES", default=60)
        self.public_base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
        self.privileged_landing_url = os.getenv("PRIVILEGED_LANDING_URL", "/admin/index")
        self.standard_landing_url = os.getenv("STANDARD_LANDING_URL", "/frontend/index")
        self.smtp_host = os.getenv("SMTP_HOST")
        self.smtp_port = self._get_int("SMTP_PORT", default=587)
        self.smtp_username = os.getenv("SMTP_USERNAME")
        self.smtp_password = os.getenv("SMTP_PASSWORD")
        self.smtp_from_email = os.getenv("SMTP_FROM_EMAIL")
        self.smtp_from_name = os.getenv("SMTP_FROM_NAME", "PharmaCare")
        self.admin_default_email = os.getenv("ADMIN_EMAIL")
        self.admin_default_password = os.getenv("ADMIN_PASSWORD")
        self.cors_allow_origins = self._get_list("CORS_ALLOW_ORIGINS")

    @property
    def reset_link_base_url(self) -> str:
        return f"{self.public_base_url}/account/reset-password"

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}

    @staticmethod
    def _get_list(key: str) -> List[str]:
        value = os.getenv(key)
        if not value:
            return []
        return [item.strip() for item in value.split(",") if item.strip()]
