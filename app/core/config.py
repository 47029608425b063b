from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # SQLite по умолчанию. Для продакшна PostgreSQL.
    DATABASE_URL: str = "sqlite:///./loyalty.db"

    # --- Пороги тиров по накопленным баллам (стартовые значения) ---
    TIER_BRONZE_FROM: float = 0
    TIER_SILVER_FROM: float = 500
    TIER_GOLD_FROM: float = 2_000
    TIER_PLATINUM_FROM: float = 5_000

    # сколько раз повторять запись клиента при конфликте версий
    POINTS_WRITE_RETRIES: int = 3

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def default_tiers(self) -> list[dict]:
        return [
            {"name": "Bronze", "min_points": self.TIER_BRONZE_FROM},
            {"name": "Silver", "min_points": self.TIER_SILVER_FROM},
            {"name": "Gold", "min_points": self.TIER_GOLD_FROM},
            {"name": "Platinum", "min_points": self.TIER_PLATINUM_FROM},
        ]


settings = Settings()
