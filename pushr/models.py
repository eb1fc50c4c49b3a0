"""Модели базы данных: журнал попыток деплоя."""
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean
from datetime import datetime, timezone
from pushr.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DeployAttempt(Base):
    """Одна завершенная попытка деплоя. Записи только добавляются."""
    __tablename__ = "deploy_attempts"

    id = Column(Integer, primary_key=True, index=True)
    application = Column(String, nullable=False)
    environment = Column(String, nullable=False, index=True)
    branch = Column(String, nullable=False)
    operator = Column(String, nullable=False)
    started_at = Column(DateTime, default=utc_now, nullable=False)
    finished_at = Column(DateTime, default=utc_now, nullable=False)
    success = Column(Boolean, nullable=False)
    exit_code = Column(Integer, nullable=True)
    timed_out = Column(Boolean, default=False, nullable=False)
    revision = Column(String, nullable=True)
    output = Column(Text, default="")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "application": self.application,
            "environment": self.environment,
            "branch": self.branch,
            "operator": self.operator,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "success": self.success,
            "exit_code": self.exit_code,
            "timed_out": self.timed_out,
            "revision": self.revision,
            "output": self.output,
        }


def recent_attempts(db, limit: int = 20) -> list:
    """Последние попытки деплоя, новые первыми."""
    return (
        db.query(DeployAttempt)
        .order_by(DeployAttempt.id.desc())
        .limit(limit)
        .all()
    )
