from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./livraria.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"
    # Create missing tables on startup (single-register installs)
    AUTO_CREATE_TABLES: bool = True

    # CORS origins for the PDV front-end
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Listing limits (stock history screen / PDV recent sales widget)
    DEFAULT_MOVEMENT_LIMIT: int = 100
    RECENT_SALES_LIMIT: int = 10
    SEARCH_RESULT_LIMIT: int = 50


settings = Settings()
