import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from appointment_scheduler.core.config import DEFAULT_DATABASE_URL


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

# Route handlers run in a threadpool, so SQLite connections must not be pinned to one thread.
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_time_range ON appointments(start_time, end_time)')
            )
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_professional_start '
                    'ON appointments(professional_name, start_time)'
                )
            )

        _appointment_schema_checked = True
