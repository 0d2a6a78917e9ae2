import os
from functools import lru_cache
from typing import List


class Settings:
  """Centralized configuration pulled from environment variables."""

  app_name: str = "Creative Performance Tracker"
  app_version: str = os.getenv("APP_VERSION", "0.1.0")

  supabase_jwt_secret: str
  supabase_jwt_audience: str
  supabase_issuer: str

  supabase_url: str | None
  supabase_service_role: str | None

  allowed_origins: List[str]
  usage_logging_enabled: bool

  min_spend_for_winner: float
  max_upload_mb: int
  currency_symbol: str

  def __init__(self) -> None:
    self.supabase_jwt_secret = os.getenv("SUPABASE_JWT_SECRET", "")
    self.supabase_jwt_audience = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")
    self.supabase_issuer = os.getenv("SUPABASE_ISSUER", "")

    self.supabase_url = os.getenv("SUPABASE_URL")
    self.supabase_service_role = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv(
        "SUPABASE_SERVICE_ROLE"
    )

    default_allowed = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    allowed = os.getenv("BACKEND_ALLOWED_ORIGINS")
    if allowed:
      self.allowed_origins = [origin.strip() for origin in allowed.split(",") if origin.strip()]
    else:
      self.allowed_origins = default_allowed

    self.usage_logging_enabled = os.getenv("ENABLE_USAGE_LOGGING", "0") == "1"

    # Creatives need at least this much spend before they can win an A/B group.
    self.min_spend_for_winner = float(os.getenv("MIN_SPEND_FOR_WINNER", "10"))
    self.max_upload_mb = int(os.getenv("MAX_UPLOAD_MB", "40"))
    self.currency_symbol = os.getenv("CURRENCY_SYMBOL", "$")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  return Settings()


settings = get_settings()
