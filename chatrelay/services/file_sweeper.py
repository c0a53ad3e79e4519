"""Periodic removal of expired attachment files."""

import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from chatrelay.models.chat import Attachment, ChatSession
from chatrelay.services.file_store import FileStore

logger = logging.getLogger(__name__)


class FileSweeper:
    """Delete attachments older than the retention window."""

    def __init__(self, session_factory, file_store: FileStore, max_age_seconds: int = 86_400) -> None:
        """
        Args:
            session_factory: Callable returning a new SQLAlchemy session.
            file_store: Store holding the attachment files.
            max_age_seconds: Age threshold in seconds; older attachments are removed.
        """
        self._session_factory = session_factory
        self.file_store = file_store
        self.max_age_seconds = max_age_seconds

    def prune_expired_files(self) -> int:
        """Delete expired attachment files and rows, returning how many were removed.

        Messages that referenced the attachment are kept. A session whose
        active attachment expired no longer has one.
        """
        cutoff = datetime.utcnow() - timedelta(seconds=self.max_age_seconds)
        db = self._session_factory()
        try:
            expired = db.query(Attachment).filter(Attachment.created_at < cutoff).all()
            if not expired:
                return 0

            expired_ids = [attachment.id for attachment in expired]
            paths = [attachment.path for attachment in expired]
            db.query(ChatSession).filter(
                ChatSession.active_file_id.in_(expired_ids)
            ).update({ChatSession.active_file_id: None}, synchronize_session=False)
            for attachment in expired:
                db.delete(attachment)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

        self.file_store.delete_many(paths)
        logger.info(f"Removed {len(expired_ids)} expired attachments")
        return len(expired_ids)

    async def run_periodic_cleanup(self, interval_seconds: int = 3_600) -> None:
        """Prune expired files every ``interval_seconds`` until cancelled."""
        while True:
            try:
                await asyncio.to_thread(self.prune_expired_files)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"File sweep failed: {str(e)}")
            await asyncio.sleep(interval_seconds)
