"""Исключения движка деплоя."""
from typing import Any, Dict, Optional


class PushrError(Exception):
    """Базовое исключение pushr."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotConfigured(PushrError):
    """Авторизация не настроена, сервис нельзя использовать."""


class Unauthorized(PushrError):
    """Неверные или отсутствующие учетные данные."""


class TargetNotFound(PushrError):
    """Рабочая копия не найдена."""

    def __init__(self, path: str):
        super().__init__(f"Path not valid: {path}", {"path": path})
        self.path = path


class MetadataUnavailable(PushrError):
    """Не удалось получить информацию о последнем коммите."""


class InvalidDeployRequest(PushrError):
    """Запрос на деплой ссылается на неизвестное окружение или команду."""


class DeployInProgress(PushrError):
    """Деплой в это окружение уже выполняется."""

    def __init__(self, environment: str, timeout: float):
        super().__init__(
            f"Deploy to '{environment}' is already in progress",
            {"environment": environment, "lock_timeout": timeout},
        )
        self.environment = environment


class DeployTimeout(PushrError):
    """Команда деплоя не уложилась в отведенное время и была остановлена."""

    def __init__(self, timeout: float, output: str = ""):
        super().__init__(f"Deploy command exceeded {timeout:g}s and was killed", {"timeout": timeout})
        self.timeout = timeout
        self.output = output


class DeployFailed(PushrError):
    """Команда деплоя завершилась с ненулевым кодом."""

    def __init__(self, output: str, exit_status: Optional[int] = None):
        super().__init__(
            f"Deploy command failed (exit status {exit_status})",
            {"exit_status": exit_status},
        )
        self.output = output
        self.exit_status = exit_status
