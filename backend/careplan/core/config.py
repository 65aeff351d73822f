from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    APP_NAME: str = "Home-Visit Care Plan Service"
    VERSION: str = "1.0.0"
    SECRET_KEY: str = "change-me-in-production-use-strong-random-key"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Hosted backend; leaving it unset forces fully-offline mode
    DATABASE_URL: Optional[str] = None

    # "true" = fully offline, "partial" = real auth + fixture patient/plan data
    DEMO_MODE: str = ""
    DEMO_LOGIN_EMAIL: str = "test@example.com"
    DEMO_LOGIN_PASSWORD: str = "password123"

    # Draft generation service (Gemini generateContent REST API)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-1.5-pro"
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GENERATION_TIMEOUT: int = 30

    # Wizard sessions: idle ones are dropped after WIZARD_IDLE_MINUTES,
    # saved or cancelled ones after WIZARD_FINISHED_MINUTES
    WIZARD_IDLE_MINUTES: int = 120
    WIZARD_FINISHED_MINUTES: int = 15

    # Display preferences (theme, font size)
    USER_SETTINGS_PATH: str = "./user_settings.json"

    class Config:
        env_file = ".env"

    @property
    def offline_mode(self) -> bool:
        return self.DEMO_MODE == "true" or not self.DATABASE_URL

    @property
    def partial_demo_mode(self) -> bool:
        return self.DEMO_MODE == "partial" and not self.offline_mode

    @property
    def fixture_data_mode(self) -> bool:
        """Patient and plan data come from in-memory fixtures."""
        return self.offline_mode or self.partial_demo_mode


settings = Settings()
