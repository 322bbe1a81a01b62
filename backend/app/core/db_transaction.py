from contextlib import contextmanager
from sqlalchemy.orm import Session
from app.core.logging_config import get_logger

logger = get_logger("db_transaction")


@contextmanager
def db_transaction(db: Session):
    """Commit on success, roll back and re-raise on any error."""
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"Transaction rolled back: {str(e)}")
        raise
