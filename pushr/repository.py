"""Чтение информации о последнем коммите рабочей копии."""
from datetime import datetime
from pathlib import Path
from typing import Union

from pushr.errors import MetadataUnavailable, PushrError
from pushr.runner import CommandRunner
from pushr.schemas import CommitInfo


SEPARATOR = " --|-- "
LOG_FORMAT = SEPARATOR.join(["%h", "%s", "%an", "%ar", "%ci"])
GIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def parse_log_line(line: str) -> CommitInfo:
    """Разобрать строку `git log` в CommitInfo."""
    # Тема коммита может содержать разделитель, поэтому режем с обоих концов
    head = line.strip().split(SEPARATOR, 1)
    parts = head[:1] + head[1].rsplit(SEPARATOR, 3) if len(head) == 2 else head
    if len(parts) != 5 or not all(parts):
        raise MetadataUnavailable(f"Unexpected git log output: {line!r}")
    revision, message, author, when, timestamp = parts
    try:
        committed_at = datetime.strptime(timestamp, GIT_DATE_FORMAT)
    except ValueError:
        raise MetadataUnavailable(f"Unexpected commit date: {timestamp!r}")
    return CommitInfo(
        revision=revision,
        message=message,
        author=author,
        when=when,
        committed_at=committed_at,
    )


class RepositoryInfoReader:
    """Запрашивает у git данные последнего коммита в `<path>/current`.

    Сам ничего не кэширует: после деплоя вызывающий обязан
    перечитать информацию.
    """

    def __init__(self, runner: CommandRunner, timeout: float = 30.0):
        self.runner = runner
        self.timeout = timeout

    async def read(self, path: Union[str, Path]) -> CommitInfo:
        current = Path(path) / "current"
        if not current.is_dir():
            raise MetadataUnavailable(f"Working copy not found: {current}")

        argv = ["git", "log", "-n", "1", f"--pretty=format:{LOG_FORMAT}"]
        try:
            exit_status, output = await self.runner.run(current, argv, timeout=self.timeout)
        except (OSError, PushrError) as e:
            raise MetadataUnavailable(f"git log failed in {current}: {e}") from e

        if exit_status != 0 or not output.strip():
            raise MetadataUnavailable(
                f"git log exited with {exit_status} in {current}",
                {"output": output},
            )
        return parse_log_line(output.strip().splitlines()[0])
