"""
Conversational assistant for questions about uploaded documents.

Documents are referenced by mention; mentioned PDFs are uploaded and sent
alongside the question. A short window of recent messages is kept in memory
so follow-up questions without mentions have context.
"""
import logging
import threading
import time
from typing import Any, Dict, List, Optional

from sop_compare.services import llm_client
from sop_compare.services.file_manager import upload_document, wait_for_files_active
from sop_compare.services.rate_limiter import RateLimiter, rate_limiter as default_rate_limiter

logger = logging.getLogger(__name__)

MAX_MEMORY_MESSAGES = 10

SYSTEM_PROMPT = """You are an AI assistant specialized in regulatory compliance and document analysis.
Your primary role is to help users understand the relationship between Standard Operating Procedures (SOPs)
and regulatory guidelines/requirements.

CAPABILITIES:
- Analyze regulatory documents and SOPs to identify compliance gaps
- Explain regulatory requirements in clear, simple language
- Compare different documents to identify contradictions or alignments
- Answer questions about specific sections of documents that users reference
- Provide factual information based only on the documents mentioned

LIMITATIONS:
- Only reference information from the documents explicitly mentioned by the user with @(document_name)
- If the answer cannot be found in the mentioned documents, acknowledge this limitation
- Do not provide legal advice or claim regulatory authority
- Do not hallucinate content that is not present in the referenced documents

RESPONSE GUIDELINES:
- Be concise and focused on answering the specific question
- When analyzing a document, clearly indicate which document and section you are referencing
- When comparing documents, organize your response with clear headings
- Use bullet points for clarity when listing multiple items
- If the user doesn't reference any document, ask which specific document they'd like you to analyze

Always be professional, precise, and helpful while maintaining the factual boundaries of the referenced documents."""


def _reply(content: str) -> Dict[str, Any]:
    now_ms = int(time.time() * 1000)
    return {'id': str(now_ms), 'content': content, 'timestamp': now_ms}


class ConversationManager:
    """Chat front-end holding a bounded message window."""

    def __init__(self, rate_limiter: Optional[RateLimiter] = None, max_messages: int = MAX_MEMORY_MESSAGES):
        self.rate_limiter = rate_limiter or default_rate_limiter
        self.max_messages = max_messages
        self._lock = threading.Lock()
        self._messages: List[Dict[str, str]] = []

    def _remember(self, message: str, response: str) -> None:
        with self._lock:
            self._messages.append({'role': 'user', 'content': message})
            self._messages.append({'role': 'assistant', 'content': response})
            self._messages = self._messages[-self.max_messages:]

    def _session_with_history(self) -> llm_client.ChatSession:
        session = llm_client.start_session(SYSTEM_PROMPT)
        with self._lock:
            for entry in self._messages:
                session.history.append(dict(entry))
        return session

    def _answer_plain(self, message: str) -> str:
        self.rate_limiter.acquire()
        return self._session_with_history().send(message)

    def _answer_with_documents(self, message: str, mentions: List[Dict[str, Any]]) -> str:
        logger.info(f"Processing {len(mentions)} documents for query: \"{message[:50]}\"")
        start_time = time.time()

        documents = [upload_document(doc['path'], rate_limiter=self.rate_limiter) for doc in mentions]
        wait_for_files_active(documents)

        parts = [{'file_id': document.remote.file_id} for document in documents]
        parts.append({'text': message})

        session = llm_client.start_session(SYSTEM_PROMPT)
        self.rate_limiter.acquire()
        response = session.send(parts)

        logger.info(f"Document analysis completed in {time.time() - start_time:.1f}s")
        return response

    def process(self, message: str, mentions: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """
        Answer a user message.

        Args:
            message: The user's question.
            mentions: Referenced documents, each with at least a ``path``.

        Returns:
            Reply dict with id, content and timestamp. Failures are reported
            in the reply content rather than raised.
        """
        mentions = [m for m in (mentions or []) if m.get('path')]

        try:
            if mentions:
                response = self._answer_with_documents(message, mentions)
            else:
                response = self._answer_plain(message)
        except Exception as e:
            logger.error(f"Error in conversation processing: {type(e).__name__} - {e}")
            if mentions:
                content = f"I encountered an error analyzing the documents: {e}. Please try again later."
            else:
                content = f"I'm sorry, I encountered an error processing your request: {e}. Please try again."
            return _reply(content)

        self._remember(message, response)
        return _reply(response)

    def history(self) -> List[Dict[str, Any]]:
        """Remembered messages in chat-widget shape, oldest first."""
        with self._lock:
            messages = list(self._messages)
        now_ms = int(time.time() * 1000)
        return [
            {
                'id': str(index),
                'content': entry['content'],
                'type': 'user' if entry['role'] == 'user' else 'bot',
                'timestamp': now_ms - (len(messages) - index) * 1000,
            }
            for index, entry in enumerate(messages)
        ]

    def clear(self) -> None:
        with self._lock:
            self._messages = []


# Module-level instance
conversation_manager = ConversationManager()
