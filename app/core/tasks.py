import logging
import threading
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.models.base import utc_now
from app.repositories.user_token_repository import UserTokenRepository

logger = logging.getLogger(__name__)
_cleanup_thread: Optional[threading.Thread] = None
_lock = threading.Lock()


def purge_user_tokens(session_factory: sessionmaker, repo: UserTokenRepository) -> int:
    """Delete expired or already consumed confirmation/reset tokens; returns the row count."""
    with session_factory() as db:
        removed = repo.purge_expired(db, utc_now())
    if removed:
        logger.info("Purged %d expired or consumed user token(s)", removed)
    return removed


def start_user_token_cleanup(
    session_factory: sessionmaker, repo: UserTokenRepository, interval_seconds: int
) -> Optional[threading.Thread]:
    """Start the background purge thread once per process; a non-positive interval disables it."""
    global _cleanup_thread

    if interval_seconds <= 0:
        return None

    with _lock:
        if _cleanup_thread and _cleanup_thread.is_alive():
            return _cleanup_thread

        def _worker():
            while True:
                try:
                    purge_user_tokens(session_factory, repo)
                except SQLAlchemyError as exc:
                    logger.warning("Failed to purge user tokens: %s", exc)
                time.sleep(interval_seconds)

        _cleanup_thread = threading.Thread(target=_worker, name="user-token-cleanup", daemon=True)
        _cleanup_thread.start()
        return _cleanup_thread
