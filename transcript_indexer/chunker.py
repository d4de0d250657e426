"""
Conversation chunking for transcript search

Splits a conversation into size-bounded chunks for embedding and retrieval.
A message is never split across chunks.
"""

from typing import List, Dict
from dataclasses import dataclass
from .transcript_parser import Conversation, Message


ROLE_LABELS = {'user': 'User', 'assistant': 'Assistant'}


@dataclass
class ConversationChunk:
    """A run of consecutive messages from one session"""
    id: str  # "<session_id>-<chunk_index>"
    session_id: str
    project: str
    content: str  # Rendered text for embedding
    timestamp: str  # Timestamp of the first message in the chunk
    chunk_index: int


class MessageChunker:
    """Packs rendered messages into chunks of at most max_chunk_size characters"""

    def __init__(self, max_chunk_size: int = 2000):
        self.max_chunk_size = max_chunk_size

    def chunk_conversation(self, conversation: Conversation) -> List[ConversationChunk]:
        """Split a conversation into message-aligned chunks"""
        chunks: List[ConversationChunk] = []
        buffer = ''
        chunk_timestamp = ''

        for message in conversation.messages:
            message_text = self._render_message(message)

            # Flush before this message would push the chunk over the limit.
            # A single oversized message still gets a chunk of its own.
            if buffer and len(buffer) + len(message_text) > self.max_chunk_size:
                chunks.append(self._create_chunk(conversation, buffer, chunk_timestamp, len(chunks)))
                buffer = ''

            if not buffer:
                chunk_timestamp = message.timestamp
            buffer += message_text

        if buffer.strip():
            chunks.append(self._create_chunk(conversation, buffer, chunk_timestamp, len(chunks)))

        return chunks

    def _render_message(self, message: Message) -> str:
        label = ROLE_LABELS.get(message.role, message.role.capitalize())
        return f"{label}: {message.content}\n\n"

    def _create_chunk(
        self,
        conversation: Conversation,
        text: str,
        timestamp: str,
        chunk_index: int
    ) -> ConversationChunk:
        return ConversationChunk(
            id=f"{conversation.session_id}-{chunk_index}",
            session_id=conversation.session_id,
            project=conversation.project,
            content=text.rstrip(),
            timestamp=timestamp,
            chunk_index=chunk_index
        )

    def get_chunking_stats(self, chunks: List[ConversationChunk]) -> Dict:
        """Get statistics about the chunking results"""
        if not chunks:
            return {}

        text_lengths = [len(chunk.content) for chunk in chunks]

        return {
            'total_chunks': len(chunks),
            'sessions': len(set(chunk.session_id for chunk in chunks)),
            'avg_text_length': sum(text_lengths) / len(chunks),
            'min_text_length': min(text_lengths),
            'max_text_length': max(text_lengths),
        }
