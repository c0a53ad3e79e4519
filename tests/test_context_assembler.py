"""Unit tests for the per-turn context assembly."""

import unittest
from unittest.mock import Mock

from chatrelay.models.schemas import MessageKind, MessageRole
from chatrelay.services.chat_service import ChatService
from chatrelay.services.context_assembler import FRAGMENTS_INSTRUCTION, OPENING_INSTRUCTION, ContextAssembler
from chatrelay.services.retriever import KeywordChunkRetriever, ScoredChunk

from fakes import make_session_factory


class TestContextAssembler(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.chat_service = ChatService(self.db)
        self.session = self.chat_service.create_session("user-1", "Test chat")
        self.assembler = ContextAssembler(
            self.chat_service,
            KeywordChunkRetriever(chunk_size=800),
            history_window=30,
            image_budget=500,
            summary_budget=1200,
        )

    def tearDown(self) -> None:
        self.db.close()

    def _say(self, role: MessageRole, content: str, **fields):
        return self.chat_service.add_message(self.session.id, role, content, **fields)

    def test_plain_history_is_passed_through_in_order(self) -> None:
        self._say(MessageRole.USER, "Hi there")
        self._say(MessageRole.ASSISTANT, "Hello! How can I help?")
        new_message = self._say(MessageRole.USER, "Tell me a joke")

        entries = self.assembler.assemble(self.session, new_message)

        self.assertEqual(entries, [
            {"role": "user", "content": "Hi there"},
            {"role": "assistant", "content": "Hello! How can I help?"},
            {"role": "user", "content": "Tell me a joke"},
        ])

    def test_window_keeps_only_most_recent_messages(self) -> None:
        assembler = ContextAssembler(self.chat_service, KeywordChunkRetriever(), history_window=5)
        for number in range(10):
            self._say(MessageRole.USER, f"message {number}")
        new_message = self._say(MessageRole.USER, "latest")

        entries = assembler.assemble(self.session, new_message)

        self.assertEqual([entry["content"] for entry in entries], [
            "message 6", "message 7", "message 8", "message 9", "latest",
        ])

    def test_new_message_is_always_last(self) -> None:
        new_message = self._say(MessageRole.USER, "What is in the picture?", kind=MessageKind.IMAGE)
        self._say(
            MessageRole.SYSTEM,
            "Image description: a lighthouse",
            kind=MessageKind.IMAGE_DESCRIPTION,
            image_description="a lighthouse",
        )

        entries = self.assembler.assemble(self.session, new_message)

        self.assertEqual(entries[-1], {"role": "user", "content": "What is in the picture?"})
        self.assertEqual(sum(1 for entry in entries if entry["content"] == "What is in the picture?"), 1)

    def test_latest_image_description_is_injected_and_truncated(self) -> None:
        self._say(
            MessageRole.SYSTEM, "Image description: old", kind=MessageKind.IMAGE_DESCRIPTION,
            image_description="an old photo",
        )
        long_description = "d" * 900
        self._say(
            MessageRole.SYSTEM, "Image description: new", kind=MessageKind.IMAGE_DESCRIPTION,
            image_description=long_description,
        )
        new_message = self._say(MessageRole.USER, "What colour is it?")

        entries = self.assembler.assemble(self.session, new_message)
        injected = entries[-2]

        self.assertEqual(injected["role"], "user")
        self.assertIn("d" * 500, injected["content"])
        self.assertNotIn("d" * 501, injected["content"])
        self.assertNotIn("an old photo", injected["content"])

    def test_document_summary_is_preferred_over_fragments(self) -> None:
        retriever = Mock()
        assembler = ContextAssembler(self.chat_service, retriever, summary_budget=1200)
        self._say(
            MessageRole.USER, "Summarize this document.", kind=MessageKind.DOCUMENT,
            document_text="invoice total 100", document_summary="s" * 2000,
        )
        new_message = self._say(MessageRole.USER, "What about the invoice?")

        entries = assembler.assemble(self.session, new_message)

        retriever.retrieve.assert_not_called()
        self.assertIn("s" * 1200, entries[-2]["content"])
        self.assertNotIn("s" * 1201, entries[-2]["content"])

    def test_fragments_are_injected_without_summary(self) -> None:
        invoice_window = ("invoice " * 5).ljust(800, ".")
        document = ("meeting notes " * 60)[:800] + invoice_window + ("travel plans " * 70)[:800]
        self._say(
            MessageRole.USER, "Summarize this document.", kind=MessageKind.DOCUMENT,
            document_text=document,
        )
        new_message = self._say(MessageRole.USER, "what about the invoice")

        entries = self.assembler.assemble(self.session, new_message)
        injected = entries[-2]["content"]

        self.assertTrue(injected.startswith(FRAGMENTS_INSTRUCTION))
        self.assertIn("Fragment 1:\n" + invoice_window, injected)
        self.assertNotIn("Fragment 2", injected)
        self.assertEqual(entries[-1]["content"], "what about the invoice")

    def test_no_injection_when_no_fragment_matches(self) -> None:
        self._say(
            MessageRole.USER, "Summarize this document.", kind=MessageKind.DOCUMENT,
            document_text="nothing relevant here",
        )
        new_message = self._say(MessageRole.USER, "tell me about elephants")

        entries = self.assembler.assemble(self.session, new_message)

        self.assertEqual(len(entries), 2)

    def test_upload_turn_without_match_gets_opening_fragments(self) -> None:
        document = "Quarterly revenue grew in Europe and Asia. " * 40
        upload = self._say(
            MessageRole.USER, "Summarize this document.", kind=MessageKind.DOCUMENT,
            document_text=document,
        )

        entries = self.assembler.assemble(self.session, upload)
        injected = entries[-2]["content"]

        self.assertTrue(injected.startswith(OPENING_INSTRUCTION))
        self.assertIn("Fragment 1:\n" + document[:800], injected)
        self.assertIn("Fragment 3:\n" + document[1600:], injected)
        self.assertNotIn("Fragment 4", injected)
        self.assertEqual(entries[-1]["content"], "Summarize this document.")

    def test_only_most_recent_document_is_searched(self) -> None:
        retriever = Mock()
        retriever.retrieve.return_value = [ScoredChunk(text="second doc fragment", score=1, index=0)]
        assembler = ContextAssembler(self.chat_service, retriever)
        self._say(MessageRole.USER, "doc one", kind=MessageKind.DOCUMENT, document_text="first document")
        self._say(MessageRole.USER, "doc two", kind=MessageKind.DOCUMENT, document_text="second document")
        new_message = self._say(MessageRole.USER, "what does it say")

        assembler.assemble(self.session, new_message)

        retriever.retrieve.assert_called_once_with("second document", "what does it say")

    def test_no_attachments_means_no_injection(self) -> None:
        new_message = self._say(MessageRole.USER, "Hello")

        entries = self.assembler.assemble(self.session, new_message)

        self.assertEqual(entries, [{"role": "user", "content": "Hello"}])

    def test_system_prompt_is_prepended(self) -> None:
        assembler = ContextAssembler(self.chat_service, KeywordChunkRetriever(), system_prompt="Be brief.")
        new_message = self._say(MessageRole.USER, "Hello")

        entries = assembler.assemble(self.session, new_message)

        self.assertEqual(entries[0], {"role": "system", "content": "Be brief."})
        self.assertEqual(entries[-1], {"role": "user", "content": "Hello"})

    def test_sessions_do_not_share_context(self) -> None:
        other = self.chat_service.create_session("user-2", "Other chat")
        self.chat_service.add_message(
            other.id, MessageRole.SYSTEM, "Image description: a boat", kind=MessageKind.IMAGE_DESCRIPTION,
            image_description="a boat",
        )
        new_message = self._say(MessageRole.USER, "Hello")

        entries = self.assembler.assemble(self.session, new_message)

        self.assertEqual(len(entries), 1)
