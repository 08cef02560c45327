"""Conversion log for the endpoint. SQLite by default; DATABASE_URL accepts any SQLAlchemy URL whose driver is installed.
Startup ensures the table exists; on connection failure logs verbosely and falls back to in-memory SQLite
so the endpoint can still serve conversions."""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from webp_batch import config as app_config

logger = logging.getLogger("webp_batch.db")

_engine: Optional[Engine] = None

IN_MEMORY_URL = "sqlite:///:memory:"


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _create_engine(url: str) -> Engine:
    kwargs = {}
    if _is_sqlite(url):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url:
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def _ensure_tables(engine: Engine) -> None:
    """Create the conversions table if it does not exist."""
    autoincrement = "INTEGER PRIMARY KEY AUTOINCREMENT" if engine.dialect.name == "sqlite" else "BIGINT AUTO_INCREMENT PRIMARY KEY"
    with engine.connect() as conn:
        conn.execute(text(f"""
            CREATE TABLE IF NOT EXISTS conversions (
                id {autoincrement},
                filename VARCHAR(512),
                media_type VARCHAR(100),
                input_bytes BIGINT,
                output_bytes BIGINT,
                status VARCHAR(50) NOT NULL,
                error TEXT,
                duration_seconds FLOAT,
                created_at VARCHAR(50) NOT NULL
            )
        """))
        conn.commit()


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        engine = _create_engine(app_config.DATABASE_URL)
        _ensure_tables(engine)
        _engine = engine
        logger.info("Database engine created (%s)", engine.dialect.name)
    return _engine


def init_db() -> None:
    """Prepare the database at startup. On failure, fall back to in-memory SQLite so the app can start."""
    global _engine
    try:
        get_engine()
        logger.info("Database ready: %s", app_config.DATABASE_URL.split("://", 1)[0])
        return
    except SQLAlchemyError as e:
        logger.warning("Database unavailable (%s): %s. Using in-memory SQLite.", app_config.DATABASE_URL, e, exc_info=True)
    app_config.DATABASE_URL = IN_MEMORY_URL
    _engine = None
    get_engine()
    logger.warning("Conversion log will not persist across restarts.")


def reset_engine() -> None:
    """Dispose the current engine; the next call to get_engine() reconnects."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


@contextmanager
def session():
    with get_engine().connect() as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def record_conversion(
    filename: Optional[str],
    status: str,
    *,
    media_type: Optional[str] = None,
    input_bytes: Optional[int] = None,
    output_bytes: Optional[int] = None,
    error: Optional[str] = None,
    duration_seconds: Optional[float] = None,
) -> None:
    params = {
        "filename": filename,
        "media_type": media_type,
        "input_bytes": input_bytes,
        "output_bytes": output_bytes,
        "status": status,
        "error": error,
        "duration_seconds": duration_seconds,
        "created_at": _now_iso(),
    }
    with session() as conn:
        conn.execute(
            text("""
                INSERT INTO conversions (filename, media_type, input_bytes, output_bytes, status, error, duration_seconds, created_at)
                VALUES (:filename, :media_type, :input_bytes, :output_bytes, :status, :error, :duration_seconds, :created_at)
            """),
            params,
        )


def get_stats() -> dict:
    """Aggregate stats: conversions, failures, total bytes in/out of successful conversions, compression_percent."""
    with get_engine().connect() as conn:
        row = conn.execute(
            text("""
                SELECT
                    COALESCE(SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END), 0),
                    COALESCE(SUM(CASE WHEN status = 'completed' THEN 0 ELSE 1 END), 0),
                    COALESCE(SUM(CASE WHEN status = 'completed' THEN input_bytes ELSE 0 END), 0),
                    COALESCE(SUM(CASE WHEN status = 'completed' THEN output_bytes ELSE 0 END), 0),
                    COALESCE(SUM(duration_seconds), 0)
                FROM conversions
            """)
        ).fetchone()
    converted, failed = int(row[0]), int(row[1])
    total_input, total_output = int(row[2]), int(row[3])
    compression_percent = 0.0
    if total_input > 0:
        compression_percent = round((1.0 - total_output / total_input) * 100.0, 1)
    return {
        "conversions": converted,
        "failures": failed,
        "total_input_bytes": total_input,
        "total_output_bytes": total_output,
        "compression_percent": compression_percent,
        "time_spent_seconds": float(row[4]),
    }


def clear_conversions() -> None:
    with session() as conn:
        conn.execute(text("DELETE FROM conversions"))
