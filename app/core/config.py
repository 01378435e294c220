from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    APP_ENV: str = "development"
    DATABASE_URL: str = "sqlite:///./tournament.db"

    # OTP lifecycle
    OTP_EXPIRY_MINUTES: int = 5
    OTP_MAX_ATTEMPTS: int = 3
    OTP_RATE_LIMIT_MAX_REQUESTS: int = 5
    OTP_RATE_LIMIT_WINDOW_SECONDS: int = 3600
    SWEEP_INTERVAL_SECONDS: int = 300

    # "memory" keeps OTPs and rate windows in-process, "redis" shares them
    STORE_BACKEND: str = "memory"

    # Redis Configuration
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0

    # Gupshup WhatsApp
    GUPSHUP_API_KEY: Optional[str] = None
    GUPSHUP_SENDER: Optional[str] = None
    GUPSHUP_APP_NAME: str = "GupshupApp"
    GUPSHUP_TEMPLATE_NAME: str = "otp_verification_code"
    GUPSHUP_API_URL: str = "https://api.gupshup.io/sm/api/v1/template/msg"
    GUPSHUP_OPTIN_URL: str = "https://api.gupshup.io/sm/api/v1/app/opt/in"

    # Razorpay
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1/orders"

    # Admin panel / server-to-server auth
    JWT_SECRET_KEY: str = "change-me"
    INTERNAL_API_KEY: str = "change-me-internal"
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD_HASH: str = ""

    # Comma-separated, "*" allows any origin
    CORS_ORIGINS: str = "*"

    class Config:
        env_file = ".env"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def missing_provider_settings(self) -> list[str]:
        required = {
            "GUPSHUP_API_KEY": self.GUPSHUP_API_KEY,
            "GUPSHUP_SENDER": self.GUPSHUP_SENDER,
            "RAZORPAY_KEY_ID": self.RAZORPAY_KEY_ID,
            "RAZORPAY_KEY_SECRET": self.RAZORPAY_KEY_SECRET,
        }
        return [name for name, value in required.items() if not value]

settings = Settings()
