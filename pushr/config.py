"""Загрузка и валидация конфигурации из YAML."""
import os
import yaml
from pathlib import Path
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, model_validator


DEFAULT_CONFIG_NAME = "config.yaml"


class AuthConfig(BaseModel):
    """Настройки авторизации: общий токен или пара логин/пароль."""
    scheme: Literal["token", "basic"] = "basic"
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class AppConfig(BaseModel):
    """Конфигурация приложения."""
    application: str = "You really should set this to something"
    path: str
    default_environment: str = "production"
    environments: List[str] = Field(default_factory=lambda: ["production"])
    default_branch: str = "master"
    install_command: str = "bundle install"
    commands: Dict[str, str] = Field(
        default_factory=lambda: {
            "default": "bundle exec cap {environment} deploy:migrations BRANCH={branch}",
        }
    )
    default_command: str = "default"
    auth: Optional[AuthConfig] = None
    webhook_secret: Optional[str] = None
    lock_timeout: float = 5.0
    command_timeout: float = 900.0
    stats_file: str = "deploy_stats.yml"
    log_file: str = "deploy.log"
    database_url: str = "sqlite:///pushr.db"

    @model_validator(mode="after")
    def _check_defaults(self) -> "AppConfig":
        if self.default_environment not in self.environments:
            raise ValueError(
                f"default_environment '{self.default_environment}' отсутствует в environments"
            )
        if self.default_command not in self.commands:
            raise ValueError(f"default_command '{self.default_command}' отсутствует в commands")
        return self

    @property
    def deploy_ref(self) -> str:
        """Ref, пуш в который запускает автоматический деплой."""
        return f"refs/heads/{self.default_branch}"


def _resolve(base: Path, value: str) -> str:
    # sqlite:///relative.db тоже считается относительным путем
    if value.startswith("sqlite:///") and not value.startswith("sqlite:////"):
        database = value[len("sqlite:///"):]
        if database in ("", ":memory:"):
            return value
        return "sqlite:///" + str(base / database)
    candidate = Path(value)
    if candidate.is_absolute() or "://" in value:
        return value
    return str(base / candidate)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Загрузить конфигурацию из YAML файла."""
    config_path = config_path or os.environ.get("PUSHR_CONFIG", DEFAULT_CONFIG_NAME)
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Конфигурационный файл {config_path} не найден")

    with open(config_file, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    config = AppConfig(**config_data)

    # Относительные пути считаем от каталога с конфигом
    base = config_file.resolve().parent
    return config.model_copy(
        update={
            "stats_file": _resolve(base, config.stats_file),
            "log_file": _resolve(base, config.log_file),
            "database_url": _resolve(base, config.database_url),
        }
    )
