from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Retail Inventory Ledger"
    DATABASE_URL: str = "sqlite:///./inventory.db"

    LOG_LEVEL: str = "INFO"

    # Auth
    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin"

    # Optimistic-lock retries for stock mutations
    STOCK_RETRY_ATTEMPTS: int = 3
    STOCK_RETRY_BACKOFF_SECONDS: float = 0.05

    # Adjustment reasons that divert removed stock into the rejected warehouse (comma-separated)
    DESTRUCTIVE_REASONS: str = "Damaged Goods,Expired"

    DEFAULT_PAGE_LIMIT: int = 20
    MAX_PAGE_LIMIT: int = 100

    model_config = {"env_file": ".env"}

    @property
    def destructive_reasons(self) -> list[str]:
        return [r.strip() for r in self.DESTRUCTIVE_REASONS.split(",") if r.strip()]


settings = Settings()
