import weakref
from threading import Lock

from fastapi import Request
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


Base = declarative_base()

_schema_lock = Lock()
_schema_checked_engines: "weakref.WeakSet[Engine]" = weakref.WeakSet()


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in {"sqlite://", "sqlite:///"}:
            options["poolclass"] = StaticPool
        return create_engine(database_url, **options)
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def ensure_email_log_schema(engine: Engine) -> None:
    if engine in _schema_checked_engines:
        return

    with _schema_lock:
        if engine in _schema_checked_engines:
            return

        table_names = set(inspect(engine).get_table_names())

        index_statements = []
        if 'email_logs' in table_names:
            index_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_email_logs_sent_at ON email_logs(sent_at)'
            )
        if 'users' in table_names:
            index_statements.append('CREATE INDEX IF NOT EXISTS idx_users_role ON users(role)')
            index_statements.append('CREATE INDEX IF NOT EXISTS idx_users_class_id ON users(class_id)')

        with engine.begin() as connection:
            for statement in index_statements:
                connection.execute(text(statement))

        _schema_checked_engines.add(engine)
