"""Запуск внешних команд (git, bundler, capistrano)."""
import asyncio
import os
import signal
import subprocess
from pathlib import Path
from typing import List, NamedTuple, Optional, Protocol, Union

from pushr.errors import DeployTimeout


class CommandOutput(NamedTuple):
    exit_status: int
    output: str


class CommandRunner(Protocol):
    """Интерфейс запуска команды: код возврата и объединенный stdout+stderr."""

    async def run(
        self,
        cwd: Union[str, Path],
        argv: List[str],
        timeout: Optional[float] = None,
    ) -> CommandOutput:
        ...


class SubprocessRunner:
    """Запуск команд через subprocess в отдельном потоке."""

    def __init__(self, kill_grace: float = 5.0):
        self.kill_grace = kill_grace

    async def run(
        self,
        cwd: Union[str, Path],
        argv: List[str],
        timeout: Optional[float] = None,
    ) -> CommandOutput:
        return await asyncio.to_thread(self._run, str(cwd), argv, timeout)

    def _run(self, cwd: str, argv: List[str], timeout: Optional[float]) -> CommandOutput:
        env = os.environ.copy()
        env['PYTHONUNBUFFERED'] = '1'

        process = subprocess.Popen(
            argv,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            env=env,
            # своя группа процессов, чтобы при таймауте остановить всю цепочку
            start_new_session=True,
        )
        try:
            output, _ = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            output = self._stop(process)
            raise DeployTimeout(timeout, output)
        return CommandOutput(process.returncode, output or "")

    def _stop(self, process: subprocess.Popen) -> str:
        """Остановить процесс и вернуть то, что он успел вывести."""
        self._signal(process, signal.SIGTERM)
        try:
            output, _ = process.communicate(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            self._signal(process, signal.SIGKILL)
            output, _ = process.communicate()
        return output or ""

    @staticmethod
    def _signal(process: subprocess.Popen, sig: int) -> None:
        try:
            os.killpg(process.pid, sig)
        except ProcessLookupError:
            pass
