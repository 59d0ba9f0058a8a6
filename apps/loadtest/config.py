from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigurationError(Exception):
    """Raised when the run configuration cannot be loaded."""


class ApiSettings(BaseModel):
    base_url: str
    timeout_seconds: float = Field(default=10.0, gt=0)
    verify_ssl: bool = True


class OAuthSettings(BaseModel):
    authority: str
    token_endpoint: str | None = None
    client_id: str
    client_secret: str | None = None
    scope: str = "openid"
    grant_type: Literal["client_credentials", "password"] = "client_credentials"
    username: str | None = None
    password: str | None = None

    @model_validator(mode="after")
    def _require_user_credentials(self) -> OAuthSettings:
        if self.grant_type == "password" and not (self.username and self.password):
            raise ValueError("password grant requires username and password")
        return self


class ScenarioSettings(BaseModel):
    token_count: int = Field(default=5, gt=0)
    main_count: int = Field(default=95, ge=0)
    batch_size: int = Field(default=5, gt=0)
    # 401: the token for this main-phase request gets an invalid suffix
    expired_token_index: int = 10
    expired_token_suffix: str = "x"
    # 403: this main-phase request asks for a company the user cannot see
    unauthorized_index: int = 32
    # 500: ordinal of the created call context, counted across the whole run
    server_error_ordinal: int = 14
    company_a: int = 1
    company_b: int = 2
    company_c: int = 4
    unauthorized_company: int = 3


class Configuration(BaseModel):
    app: ApiSettings
    oauth: OAuthSettings
    scenario: ScenarioSettings = Field(default_factory=ScenarioSettings)


class Settings(BaseSettings):
    config_file: Path = Path("loadtest.config.json")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="LOADTEST_")

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"invalid LOADTEST_ environment settings: {exc}") from exc


def load_configuration(path: str | Path) -> Configuration:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"configuration file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"configuration file {path} is not valid JSON: {exc}") from exc

    try:
        return Configuration.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration in {path}: {exc}") from exc
