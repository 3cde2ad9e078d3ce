from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration for the internship manager"""

    # Storage
    database_path: str = "internhub.db"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Placement
    freelance_company_name: str = "Freelance"

    # Tasks
    default_max_marks: int = 100

    # Accounts
    password_hash_method: str = "scrypt"
    min_password_length: int = 8

    # Notifications
    notification_history_size: int = 10000

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore"
    }


@lru_cache()
def get_settings(env_path: Optional[str] = None) -> Settings:
    """Load settings once, reading an optional .env file first."""
    dotenv_path = Path(env_path) if env_path else Path.cwd() / '.env'
    load_dotenv(dotenv_path=dotenv_path)
    return Settings()
