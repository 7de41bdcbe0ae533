"""
Подключение к базе данных (PostgreSQL или SQLite)
"""
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Создание движка базы данных
if settings.DATABASE_URL.startswith("sqlite"):
    # SQLite - для локальной разработки и тестов
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={
            "check_same_thread": False,
            "timeout": settings.DB_CONNECT_TIMEOUT,
        },
        echo=settings.DEBUG
    )

    @event.listens_for(engine, "connect")
    def _sqlite_on_connect(dbapi_connection, connection_record):
        # Транзакциями управляет SQLAlchemy, а не драйвер sqlite3
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_on_begin(conn):
        # Проверка слота и вставка записи выполняются под одной блокировкой на запись
        conn.exec_driver_sql("BEGIN IMMEDIATE")
else:
    # PostgreSQL - для продакшена
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"connect_timeout": settings.DB_CONNECT_TIMEOUT},
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_timeout=settings.DB_CONNECT_TIMEOUT,
        echo=settings.DEBUG
    )

# Создание фабрики сессий
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Базовый класс для моделей
Base = declarative_base()


def get_db():
    """
    Dependency для получения сессии базы данных
    Использование:
        @router.get("/items")
        def read_items(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Инициализация базы данных
    Создание всех таблиц, определенных в моделях
    """
    from . import models  # noqa: F401 - регистрация моделей в Base.metadata

    Base.metadata.create_all(bind=engine)
    logger.info("Таблицы базы данных созданы")
