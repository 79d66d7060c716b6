import os
from os.path import join
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from accounts.config import (
    DEFAULT_DB_PATH,
    DEFAULT_DB_LOG_FILE_PATH,
    DEFAULT_INVITATION_VALIDITY_DAYS,
    DEFAULT_LOG_FILE_PATH,
)

root_dir = os.path.dirname(os.path.abspath(__file__))


class Settings(BaseSettings):
    db_path: str = DEFAULT_DB_PATH

    invitation_validity_days: int = DEFAULT_INVITATION_VALIDITY_DAYS

    # used to build the redemption links sent in invitation emails
    app_scheme: str = "https"
    app_host: str = "localhost"
    app_port: int | None = None
    app_context: str = ""

    jwt_secret: str | None = None
    rules_file: str | None = None  # JSON operation -> rules table override

    log_file_path: str = DEFAULT_LOG_FILE_PATH
    db_log_file_path: str = DEFAULT_DB_LOG_FILE_PATH
    log_level: str = "INFO"

    bugsnag_api_key: str | None = None
    env: str | None = None

    server_host: str = "0.0.0.0"
    server_port: int = 8000

    model_config = SettingsConfigDict(env_file=join(root_dir, ".env"))

    @property
    def app_url(self) -> str:
        netloc = self.app_host
        if self.app_port and self.app_port not in (80, 443):
            netloc = f"{netloc}:{self.app_port}"

        context = self.app_context.strip("/")
        url = f"{self.app_scheme}://{netloc}"
        return f"{url}/{context}" if context else url


@lru_cache
def get_settings():
    return Settings()


settings = get_settings()
