import logging
import subprocess
import sys
from pathlib import Path

from lifeline.core.config import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _sqlite_path(database_url: str) -> Path | None:
    if not database_url.startswith("sqlite") or ":memory:" in database_url:
        return None
    _, _, path = database_url.partition(":///")
    return Path(path) if path else None


async def run_migrations():
    """Runs `alembic upgrade head` from the project root."""
    try:
        logger.info("Running database migrations...")

        db_path = _sqlite_path(settings.DATABASE_URL)
        if db_path is not None and not db_path.parent.exists():
            logger.info(f"Creating database directory: {db_path.parent}")
            db_path.parent.mkdir(parents=True, exist_ok=True)

        result = subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "head"],
            check=True,
            capture_output=True,
            text=True,
            cwd=str(PROJECT_ROOT),
        )
        logger.info("Migrations completed successfully")
        if result.stdout:
            logger.info(f"Alembic output: {result.stdout}")

    except subprocess.CalledProcessError as e:
        logger.error(f"Migration failed with exit code {e.returncode}")
        if e.stderr:
            logger.error(f"Stderr: {e.stderr}")
        raise RuntimeError("Database migration failed") from e
