"""Хранилище последних деплоев по окружениям."""
import os
import tempfile
import yaml
from pathlib import Path
from typing import Dict, Union

from pushr.schemas import DeployRecord


class DeployStatsStore:
    """YAML-файл вида {окружение: {branch, name, at}}.

    Запись идет через временный файл и rename, поэтому файл никогда
    не остается недописанным. Конкурентные `put` хранилище не
    синхронизирует.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def get(self) -> Dict[str, DeployRecord]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not data:
            return {}
        return {env: DeployRecord.model_validate(record) for env, record in data.items()}

    def put(self, environment: str, record: DeployRecord) -> None:
        records = self.get()
        records[environment] = record
        data = {env: rec.model_dump(mode="json") for env, rec in records.items()}

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise
