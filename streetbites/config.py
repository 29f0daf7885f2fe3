from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "Street Bites Food Truck API"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./streetbites.db"

    # Auth
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"

    # Orders
    order_number_prefix: str = "SB"
    default_preparation_time: int = 15  # minutes per unit
    enforce_status_transitions: bool = False

    # Listing
    default_page_size: int = 20
    max_page_size: int = 100

    # Dev
    seed_menu: bool = False

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()
