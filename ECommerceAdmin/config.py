from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    API_URL : str = "http://localhost:5000/api"
    REQUEST_TIMEOUT : float = 30.0
    LOG_LEVEL : str = "INFO"

    # Cart value the admin forms use to illustrate a discount
    PREVIEW_SAMPLE_PRICE : Decimal = Decimal("1000")

    model_config = SettingsConfigDict(
        env_file = ".env",
        extra = "ignore"
    )


Config = Settings()
