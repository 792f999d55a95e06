from pathlib import Path
from pydantic_settings import BaseSettings
from functools import lru_cache


class ClientSettings(BaseSettings):
    # Backend
    api_base_url: str = "http://localhost:8000/api"
    timeout: float = 30.0

    # Local persistence
    local_storage_path: Path = Path.home() / ".nutrishop" / "local_storage.json"
    basket_key: str = "basket"
    token_key: str = "token"

    class Config:
        env_prefix = "NUTRISHOP_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_client_settings() -> ClientSettings:
    return ClientSettings()
