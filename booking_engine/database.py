from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from booking_engine.core import config


def _connect_args(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    config.DATABASE_URL,
    echo=config.DB_ECHO,
    connect_args=_connect_args(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_meeting_schema_checked = False

MEETING_INDEXES = {
    'meetings': [
        'CREATE INDEX IF NOT EXISTS idx_meetings_admin_type_start ON meetings(admin_id, meeting_type, scheduled_start)',
        'CREATE INDEX IF NOT EXISTS idx_meetings_guardian_month ON meetings(guardian_id, month_key)',
        'CREATE INDEX IF NOT EXISTS idx_meetings_teacher_month ON meetings(teacher_id, month_key)',
    ],
    'meeting_availability_slots': [
        'CREATE INDEX IF NOT EXISTS idx_slots_admin_type_day ON meeting_availability_slots(admin_id, meeting_type, day_of_week, start_time)',
        'CREATE INDEX IF NOT EXISTS idx_slots_type_day_active ON meeting_availability_slots(meeting_type, day_of_week, is_active)',
    ],
    'meeting_unavailable_periods': [
        'CREATE INDEX IF NOT EXISTS idx_time_off_admin_range ON meeting_unavailable_periods(admin_id, start_date_time, end_date_time)',
    ],
    'system_vacations': [
        'CREATE INDEX IF NOT EXISTS idx_system_vacations_range ON system_vacations(is_active, start_date, end_date)',
    ],
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    from booking_engine.models import availability_slot, meeting, system_vacation, unavailable_period, user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def ensure_meeting_schema(bind=None) -> None:
    global _meeting_schema_checked

    if _meeting_schema_checked:
        return

    target = bind or engine
    with _schema_lock:
        if _meeting_schema_checked:
            return

        inspector = inspect(target)
        existing_tables = set(inspector.get_table_names())

        with target.begin() as connection:
            for table_name, statements in MEETING_INDEXES.items():
                if table_name not in existing_tables:
                    continue
                for statement in statements:
                    connection.execute(text(statement))

        _meeting_schema_checked = True
