"""Фикстуры для тестов."""
import asyncio
from pathlib import Path

import pytest

from pushr.config import AppConfig, AuthConfig
from pushr.database import create_session_factory
from pushr.deployer import Deployer
from pushr.runner import CommandOutput
from pushr.stats import DeployStatsStore


GIT_LINE = "a1b2c3d --|-- Fix login form --|-- Alice --|-- 3 hours ago --|-- 2024-05-01 10:20:30 +0200"


class FakeRunner:
    """Раннер с заранее заданными ответами для git и команды деплоя."""

    def __init__(self):
        self.calls = []
        self.events = []
        self.git_result = CommandOutput(0, GIT_LINE)
        self.git_error = None
        self.deploy_result = CommandOutput(0, "deployed\n")
        self.deploy_error = None
        self.deploy_delay = 0.0

    async def run(self, cwd, argv, timeout=None):
        self.calls.append((Path(cwd), list(argv), timeout))
        if argv[0] == "git":
            if self.git_error:
                raise self.git_error
            return self.git_result

        chain = argv[-1]
        self.events.append(("start", chain))
        await asyncio.sleep(self.deploy_delay)
        self.events.append(("end", chain))
        if self.deploy_error:
            raise self.deploy_error
        return self.deploy_result

    @property
    def deploy_calls(self):
        return [call for call in self.calls if call[1][0] != "git"]

    @property
    def git_calls(self):
        return [call for call in self.calls if call[1][0] == "git"]


@pytest.fixture
def app_path(tmp_path: Path) -> Path:
    """Каталог приложения с current и shared/cached-copy."""
    path = tmp_path / "app"
    (path / "current").mkdir(parents=True)
    (path / "shared" / "cached-copy").mkdir(parents=True)
    return path


@pytest.fixture
def config(tmp_path: Path, app_path: Path) -> AppConfig:
    return AppConfig(
        application="Shop",
        path=str(app_path),
        default_environment="production",
        environments=["production", "staging"],
        default_branch="master",
        install_command="bundle install",
        commands={
            "default": "cap {environment} deploy BRANCH={branch}",
            "migrations": "cap {environment} deploy:migrations BRANCH={branch}",
        },
        auth=AuthConfig(scheme="token", token="s3cret"),
        lock_timeout=1.0,
        command_timeout=60.0,
        stats_file=str(tmp_path / "deploy_stats.yml"),
        log_file=str(tmp_path / "deploy.log"),
        database_url=f"sqlite:///{tmp_path / 'pushr.db'}",
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_deployer(config: AppConfig, runner: FakeRunner):
    """Фабрика движка; позволяет переопределить поля конфигурации."""

    def factory(**overrides) -> Deployer:
        app_config = config.model_copy(update=overrides)
        return Deployer(
            config=app_config,
            runner=runner,
            stats=DeployStatsStore(app_config.stats_file),
            session_factory=create_session_factory(app_config.database_url),
        )

    return factory


@pytest.fixture
def deployer(make_deployer) -> Deployer:
    return make_deployer()
