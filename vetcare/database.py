from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from vetcare.core import config


def build_engine(database_url: str):
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=config.DATABASE_ECHO, connect_args=connect_args)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schema_checked = False

# Columns added after the first release, applied to databases created before them.
COLUMN_MIGRATIONS = {
    'time_slots': [
        ('is_blocked', 'ALTER TABLE time_slots ADD COLUMN is_blocked BOOLEAN NOT NULL DEFAULT FALSE'),
    ],
    'appointments': [
        ('consultation_notes', 'ALTER TABLE appointments ADD COLUMN consultation_notes TEXT'),
        ('scheduled_at', 'ALTER TABLE appointments ADD COLUMN scheduled_at TIMESTAMP'),
    ],
    'pets': [
        ('deleted_at', 'ALTER TABLE pets ADD COLUMN deleted_at TIMESTAMP'),
    ],
}

INDEX_MIGRATIONS = {
    'time_slots': [
        'CREATE INDEX IF NOT EXISTS idx_time_slots_vet_start ON time_slots(veterinarian_id, start_time)',
        'CREATE INDEX IF NOT EXISTS idx_time_slots_bookable ON time_slots(is_available, is_blocked, start_time)',
    ],
    'appointments': [
        'CREATE INDEX IF NOT EXISTS idx_appointments_owner_created ON appointments(pet_owner_id, created_at)',
        'CREATE INDEX IF NOT EXISTS idx_appointments_vet_created ON appointments(veterinarian_id, created_at)',
        'CREATE INDEX IF NOT EXISTS idx_appointments_slot_status ON appointments(time_slot_id, status)',
    ],
    'notifications': [
        'CREATE INDEX IF NOT EXISTS idx_notifications_user_created ON notifications(user_id, created_at)',
    ],
}


def run_schema_migrations(bind=None) -> list[str]:
    """Apply pending column and index DDL; returns the statements executed."""
    bind = bind or engine
    inspector = inspect(bind)
    table_names = set(inspector.get_table_names())
    executed: list[str] = []

    with bind.begin() as connection:
        for table_name, steps in COLUMN_MIGRATIONS.items():
            if table_name not in table_names:
                continue
            existing_columns = {column['name'] for column in inspector.get_columns(table_name)}
            for column_name, statement in steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
                    executed.append(statement)

        for table_name, statements in INDEX_MIGRATIONS.items():
            if table_name not in table_names:
                continue
            for statement in statements:
                connection.execute(text(statement))
                executed.append(statement)

    return executed


def ensure_schema() -> None:
    global _schema_checked

    if _schema_checked:
        return

    with _schema_lock:
        if _schema_checked:
            return

        run_schema_migrations()
        _schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
