"""Движок деплоя: блокировки по окружениям, запуск команды, учет результата."""
import asyncio
import logging
import shlex
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import yaml
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from pushr.config import AppConfig
from pushr.errors import (
    DeployInProgress,
    DeployTimeout,
    InvalidDeployRequest,
    MetadataUnavailable,
    TargetNotFound,
)
from pushr.models import DeployAttempt, recent_attempts
from pushr.repository import RepositoryInfoReader
from pushr.runner import CommandRunner
from pushr.schemas import CommitInfo, DeployRecord, DeployRequest, DeployResult, DeployTarget
from pushr.stats import DeployStatsStore


class Deployer:
    """Экземпляр движка со своим кэшем CommitInfo и своим логгером."""

    def __init__(
        self,
        config: AppConfig,
        runner: CommandRunner,
        stats: DeployStatsStore,
        session_factory: sessionmaker,
        reader: Optional[RepositoryInfoReader] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.runner = runner
        self.stats_store = stats
        self.session_factory = session_factory
        self.reader = reader or RepositoryInfoReader(runner)
        self.log = logger or logging.getLogger("pushr.deploy")
        self._locks: Dict[str, asyncio.Lock] = {}
        self._commit_cache: Dict[Path, CommitInfo] = {}

    def target(self, environment: Optional[str] = None) -> DeployTarget:
        """Цель деплоя из конфигурации."""
        return DeployTarget(
            path=Path(self.config.path),
            application=self.config.application,
            environment=environment or self.config.default_environment,
        )

    async def commit_info(self, target: DeployTarget, refresh: bool = False) -> CommitInfo:
        """CommitInfo из кэша; читается из git при первом обращении или по refresh."""
        if refresh or target.path not in self._commit_cache:
            self._commit_cache[target.path] = await self.reader.read(target.path)
        return self._commit_cache[target.path]

    def stats(self) -> Dict[str, DeployRecord]:
        return self.stats_store.get()

    def attempts(self, limit: int = 20) -> list:
        db = self.session_factory()
        try:
            return [attempt.to_dict() for attempt in recent_attempts(db, limit)]
        finally:
            db.close()

    def is_deploying(self, environment: str) -> bool:
        lock = self._locks.get(environment)
        return bool(lock and lock.locked())

    def resolve_command(self, request: DeployRequest, environment: str, branch: str) -> str:
        """Подставить окружение и ветку в шаблон команды."""
        selector = request.command or self.config.default_command
        template = self.config.commands.get(selector)
        if template is None:
            raise InvalidDeployRequest(
                f"Unknown deploy command '{selector}'",
                {"available": sorted(self.config.commands)},
            )
        command = template.replace("{environment}", shlex.quote(environment))
        return command.replace("{branch}", shlex.quote(branch))

    async def deploy(self, target: DeployTarget, request: DeployRequest) -> DeployResult:
        """Выполнить деплой.

        Неудача команды (ненулевой код, таймаут, отсутствующий бинарник)
        возвращается как DeployResult(success=False). Исключения
        выбрасываются только до запуска команды: TargetNotFound,
        InvalidDeployRequest, DeployInProgress.
        """
        if not target.path.is_dir() or not target.cached_copy.is_dir():
            self.log.critical("Path not valid: %s", target.path)
            raise TargetNotFound(str(target.path))

        environment = request.environment or target.environment
        if environment not in self.config.environments:
            raise InvalidDeployRequest(
                f"Unknown environment '{environment}'",
                {"available": self.config.environments},
            )
        branch = request.branch or self.config.default_branch
        name = request.name or "anonymous"
        command = self.resolve_command(request, environment, branch)
        chain = f"{self.config.install_command} && {command}" if self.config.install_command else command

        lock = self._locks.setdefault(environment, asyncio.Lock())
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.config.lock_timeout)
        except asyncio.TimeoutError:
            self.log.warning("Deploy to %s rejected: another deploy is in progress", environment)
            raise DeployInProgress(environment, self.config.lock_timeout)

        try:
            self.log.info(
                "[%s] Deployment starting: environment=%s branch=%s operator=%s",
                target.application, environment, branch, name,
            )
            started_at = datetime.now(timezone.utc)
            exit_status: Optional[int] = None
            timed_out = False
            try:
                exit_status, output = await self.runner.run(
                    target.cached_copy,
                    ["/bin/sh", "-c", chain],
                    timeout=self.config.command_timeout,
                )
            except DeployTimeout as e:
                timed_out = True
                output = f"{e.output}\n{e.message}\n" if e.output else f"{e.message}\n"
            except OSError as e:
                output = f"Failed to start deploy command: {e}\n"
            success = exit_status == 0

            # Информацию о репозитории обновляем при любом исходе
            commit = await self._refresh_commit(target)

            result = DeployResult(
                success=success,
                output=output,
                commit=commit,
                environment=environment,
                branch=branch,
                name=name,
                exit_status=exit_status,
                timed_out=timed_out,
            )
            self._record(target, result, started_at)
            if success:
                self._save_stats(result)
            return result
        finally:
            lock.release()

    async def _refresh_commit(self, target: DeployTarget) -> Optional[CommitInfo]:
        try:
            return await self.commit_info(target, refresh=True)
        except MetadataUnavailable as e:
            self._commit_cache.pop(target.path, None)
            self.log.warning("Repository info unavailable after deploy: %s", e)
            return None

    def _record(self, target: DeployTarget, result: DeployResult, started_at: datetime) -> None:
        """Записать итог в лог и в журнал попыток."""
        revision = result.commit.revision if result.commit else None
        if result.success:
            message = result.commit.message if result.commit else "unknown"
            self.log.info(
                "[SUCCESS] Successfully deployed %s to %s with revision %s (%s). Output:\n%s",
                target.application, result.environment, revision, message, result.output,
            )
        else:
            self.log.warning(
                "[FAILURE] Error when deploying %s to %s (branch %s, operator %s, exit status %s). Output:\n%s",
                target.application, result.environment, result.branch, result.name,
                "timeout" if result.timed_out else result.exit_status, result.output,
            )

        db = self.session_factory()
        try:
            db.add(DeployAttempt(
                application=target.application,
                environment=result.environment,
                branch=result.branch,
                operator=result.name,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                success=result.success,
                exit_code=result.exit_status,
                timed_out=result.timed_out,
                revision=revision,
                output=result.output,
            ))
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            self.log.exception("Failed to store deploy attempt for %s", result.environment)
        finally:
            db.close()

    def _save_stats(self, result: DeployResult) -> None:
        """Обновить запись о последнем деплое; сбой записи не отменяет результат."""
        record = DeployRecord(branch=result.branch, name=result.name, at=datetime.now(timezone.utc))
        try:
            self.stats_store.put(result.environment, record)
        except (OSError, ValueError, yaml.YAMLError):
            self.log.exception("Failed to update deploy stats for %s", result.environment)
