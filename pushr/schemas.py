"""Типы данных движка деплоя."""
from datetime import datetime
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ConfigDict

from pushr.errors import DeployFailed


class DeployTarget(BaseModel):
    """Разворачиваемый экземпляр приложения."""
    model_config = ConfigDict(frozen=True)

    path: Path
    application: str
    environment: str

    @property
    def cached_copy(self) -> Path:
        return self.path / "shared" / "cached-copy"

    @property
    def current(self) -> Path:
        return self.path / "current"


class CommitInfo(BaseModel):
    """Последний коммит рабочей копии."""
    model_config = ConfigDict(frozen=True)

    revision: str
    message: str
    author: str
    when: str
    committed_at: datetime


class DeployRequest(BaseModel):
    """Параметры деплоя; пустые поля заменяются значениями из конфигурации."""
    model_config = ConfigDict(frozen=True)

    environment: Optional[str] = None
    branch: Optional[str] = None
    name: Optional[str] = None
    command: Optional[str] = None


class DeployRecord(BaseModel):
    """Последний успешный деплой в окружение."""
    model_config = ConfigDict(frozen=True)

    branch: str
    name: str
    at: datetime


class DeployResult(BaseModel):
    """Итог одной попытки деплоя."""
    model_config = ConfigDict(frozen=True)

    success: bool
    output: str
    commit: Optional[CommitInfo] = None
    environment: str
    branch: str
    name: str
    exit_status: Optional[int] = None
    timed_out: bool = False

    def raise_for_status(self) -> None:
        """Выбросить DeployFailed, если деплой не удался."""
        if not self.success:
            raise DeployFailed(self.output, self.exit_status)
