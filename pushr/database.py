"""Подключение к базе данных журнала деплоев."""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker


Base = declarative_base()


def create_session_factory(database_url: str) -> sessionmaker:
    """Создать движок, таблицы и фабрику сессий."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, connect_args=connect_args)
    # Импорт регистрирует модели в Base.metadata
    from pushr import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
