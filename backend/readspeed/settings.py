from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Auth configuration
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	# Tokens live for 7 days
	access_token_expire_minutes: int = Field(default=7 * 24 * 60, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	# "auto" pings the database per request and falls back to memory when it is down
	store_mode: Literal["auto", "durable", "memory"] = Field(default="auto", validation_alias="STORE_MODE")
	# Upper bound on a single best-effort write (seconds)
	persistence_timeout_seconds: float = Field(default=5.0, gt=0, validation_alias="PERSISTENCE_TIMEOUT_SECONDS")

	starting_credits: int = Field(default=10, validation_alias="STARTING_CREDITS")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
