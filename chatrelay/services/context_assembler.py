"""Builds the message list sent to the completion API for one chat turn.

The list is made of the session's recent message window, followed by
synthetic ``user`` entries that keep the model aware of the latest uploaded
image and document, and ends with the new user message. Injected blocks are
capped by character budgets; there is no token counting.
"""
from typing import Dict, List, Optional
import logging

from chatrelay.models.chat import ChatMessage, ChatSession
from chatrelay.models.schemas import MessageKind, MessageRole
from chatrelay.services.chat_service import ChatService
from chatrelay.services.retriever import ChunkRetriever, ScoredChunk

logger = logging.getLogger(__name__)

IMAGE_CONTEXT_TEMPLATE = "Context: the most recently uploaded image shows: {description}"
SUMMARY_CONTEXT_TEMPLATE = "Context: summary of the most recently uploaded document:\n{summary}"
FRAGMENTS_INSTRUCTION = (
    "Answer the next question using only the following fragments of the uploaded "
    "document and the earlier conversation. If they do not contain the answer, say so."
)
OPENING_INSTRUCTION = (
    "The next request is about the uploaded document. No part of it matched the request, "
    "so these are its opening fragments. Answer using them and the earlier conversation."
)

# Kinds whose content can be used as a retrieval query
QUERY_KINDS = (MessageKind.TEXT.value, MessageKind.DOCUMENT.value)


def truncate(text: str, budget: int) -> str:
    return text[:budget]


def format_fragments(chunks: List[ScoredChunk], instruction: str = FRAGMENTS_INSTRUCTION) -> str:
    parts = [instruction]
    for number, chunk in enumerate(chunks, start=1):
        parts.append(f"Fragment {number}:\n{chunk.text}")
    return "\n\n".join(parts)


class ContextAssembler:
    def __init__(
        self,
        chat_service: ChatService,
        retriever: ChunkRetriever,
        history_window: int = 30,
        image_budget: int = 500,
        summary_budget: int = 1200,
        system_prompt: Optional[str] = None,
    ):
        self.chat_service = chat_service
        self.retriever = retriever
        self.history_window = history_window
        self.image_budget = image_budget
        self.summary_budget = summary_budget
        self.system_prompt = system_prompt

    def assemble(self, session: ChatSession, new_message: ChatMessage) -> List[Dict[str, str]]:
        """Return the ordered ``{role, content}`` entries for the completion call.

        ``new_message`` must already be persisted in the session's log; it is
        always placed last, after the injected image and document context.
        """
        window = [
            message
            for message in self.chat_service.get_recent_messages(session.id, self.history_window)
            if message.id != new_message.id
        ]

        entries = [{"role": message.role, "content": message.content} for message in window]
        entries.extend(self._derived_entries(session, new_message))
        entries.append({"role": new_message.role, "content": new_message.content})

        if self.system_prompt:
            entries.insert(0, {"role": MessageRole.SYSTEM.value, "content": self.system_prompt})

        logger.debug(f"Assembled {len(entries)} entries for session {session.id}")
        return entries

    def _derived_entries(self, session: ChatSession, new_message: ChatMessage) -> List[Dict[str, str]]:
        derived = self.chat_service.get_derived_context(session.id)
        entries = []

        if derived.image_description is not None:
            description = derived.image_description.image_description or derived.image_description.content
            entries.append(self._user_entry(
                IMAGE_CONTEXT_TEMPLATE.format(description=truncate(description, self.image_budget))
            ))

        document = derived.document
        if document is None:
            return entries

        if document.document_summary:
            entries.append(self._user_entry(
                SUMMARY_CONTEXT_TEMPLATE.format(summary=truncate(document.document_summary, self.summary_budget))
            ))
        elif document.document_text and new_message.kind in QUERY_KINDS:
            chunks = self.retriever.retrieve(document.document_text, new_message.content)
            if chunks:
                logger.info(
                    f"Injecting {len(chunks)} fragments into session {session.id} "
                    f"(scores: {[chunk.score for chunk in chunks]})"
                )
                entries.append(self._user_entry(format_fragments(chunks)))
            elif document.id == new_message.id:
                # The upload turn itself must always see the document
                opening = self.retriever.opening_chunks(document.document_text)
                logger.info(f"No fragment matched the upload turn in session {session.id}, sending {len(opening)} opening fragments")
                entries.append(self._user_entry(format_fragments(opening, OPENING_INSTRUCTION)))
        return entries

    @staticmethod
    def _user_entry(content: str) -> Dict[str, str]:
        return {"role": MessageRole.USER.value, "content": content}
