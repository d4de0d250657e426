"""
Embedding generation for conversation chunks

Generates vector embeddings for semantic search and retrieval.
Supports both local models (sentence-transformers) and cloud APIs (OpenAI).
"""

import logging
from typing import List, Optional

import openai

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_MODEL = 'all-MiniLM-L6-v2'
DEFAULT_OPENAI_MODEL = 'text-embedding-3-small'


class EmbeddingGenerator:
    """Generates embeddings for chunk texts and search queries"""

    def __init__(
        self,
        model_type: str = 'local',
        model_name: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        batch_size: int = 32
    ):
        """
        Initialize embedding generator

        Args:
            model_type: 'local' (sentence-transformers) or 'openai'
            model_name: Specific model name or None for defaults
            openai_api_key: OpenAI API key if using OpenAI embeddings
            batch_size: Number of texts sent to the model per call
        """
        self.model_type = model_type
        self.batch_size = batch_size
        self.model = None

        if model_type == 'local':
            # Default local model - good balance of speed and quality
            self.model_name = model_name or DEFAULT_LOCAL_MODEL
        elif model_type == 'openai':
            self.model_name = model_name or DEFAULT_OPENAI_MODEL
            self.openai_client = openai.OpenAI(api_key=openai_api_key)
        else:
            raise ValueError(f"Unsupported model_type: {model_type}")

    def _get_model(self):
        """Load the local model on first use; this can take a while"""
        if self.model is None:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading embedding model {self.model_name}...")
            self.model = SentenceTransformer(self.model_name)
            logger.info("Embedding model loaded")
        return self.model

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Generate one embedding per text, in input order"""
        if not texts:
            return []

        embeddings: List[List[float]] = []
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            if total_batches > 1:
                logger.debug(
                    f"Embedding batch {start // self.batch_size + 1}/{total_batches} ({len(batch)} texts)"
                )
            if self.model_type == 'local':
                embeddings.extend(self._embed_local(batch))
            else:
                embeddings.extend(self._embed_openai(batch))

        return embeddings

    def embed_text(self, text: str) -> List[float]:
        """Generate embedding for a single text string"""
        return self.embed_texts([text])[0]

    def _embed_local(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings using local sentence-transformers model"""
        embeddings = self._get_model().encode(texts, normalize_embeddings=True)
        return embeddings.tolist()

    def _embed_openai(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings using OpenAI API"""
        response = self.openai_client.embeddings.create(
            model=self.model_name,
            input=texts
        )

        return [embedding.embedding for embedding in response.data]
