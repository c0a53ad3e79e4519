import asyncio
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta
from unittest.mock import patch

from chatrelay.models.chat import Attachment, ChatSession
from chatrelay.services.chat_service import ChatService
from chatrelay.services.file_store import FileStore
from chatrelay.services.file_sweeper import FileSweeper

from fakes import make_session_factory


class TestFileSweeper(unittest.TestCase):
    def setUp(self) -> None:
        self.upload_dir = tempfile.mkdtemp()
        self.file_store = FileStore(self.upload_dir)
        self.session_factory = make_session_factory()
        self.db = self.session_factory()
        self.chat_service = ChatService(self.db)
        self.sweeper = FileSweeper(self.session_factory, self.file_store, max_age_seconds=3600)

    def tearDown(self) -> None:
        self.db.close()
        shutil.rmtree(self.upload_dir, ignore_errors=True)

    def _attachment(self, session: ChatSession, age: timedelta) -> Attachment:
        file_id, path = self.file_store.save("photo.png", b"png-bytes")
        attachment = self.chat_service.add_attachment(session.id, file_id, "photo.png", "image/png", path)
        attachment.created_at = datetime.utcnow() - age
        self.db.commit()
        return attachment

    def test_only_expired_attachments_are_removed(self) -> None:
        session = self.chat_service.create_session("user-1", "Photos")
        old = self._attachment(session, timedelta(hours=25))
        fresh = self._attachment(session, timedelta(minutes=5))
        old_id, old_path, fresh_id, fresh_path = old.id, old.path, fresh.id, fresh.path

        removed = self.sweeper.prune_expired_files()

        self.assertEqual(removed, 1)
        self.assertFalse(self.file_store.exists(old_path))
        self.assertTrue(self.file_store.exists(fresh_path))
        self.db.expunge_all()
        self.assertIsNone(self.chat_service.get_attachment(old_id))
        self.assertIsNotNone(self.chat_service.get_attachment(fresh_id))

    def test_expired_active_attachment_is_cleared_from_session(self) -> None:
        session = self.chat_service.create_session("user-1", "Docs")
        old = self._attachment(session, timedelta(days=2))
        self.chat_service.touch(session, active_file_id=old.id)
        session_id = session.id

        self.sweeper.prune_expired_files()

        self.db.expunge_all()
        self.assertIsNone(self.chat_service.get_session(session_id).active_file_id)

    def test_nothing_to_remove(self) -> None:
        self.assertEqual(self.sweeper.prune_expired_files(), 0)

    def test_periodic_loop_survives_failures_and_stops_on_cancel(self) -> None:
        calls = []

        def failing_prune():
            calls.append(1)
            raise RuntimeError("disk unavailable")

        async def run() -> None:
            with patch.object(self.sweeper, "prune_expired_files", side_effect=failing_prune):
                task = asyncio.create_task(self.sweeper.run_periodic_cleanup(interval_seconds=0.01))
                await asyncio.sleep(0.1)
                task.cancel()
                with self.assertRaises(asyncio.CancelledError):
                    await task

        asyncio.run(run())
        self.assertGreater(len(calls), 1)
