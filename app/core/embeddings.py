import logging
from typing import List

from sentence_transformers import SentenceTransformer

from .config import EMBED_MODEL

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """Embeds semantic-cache keys with a sentence-transformers model."""

    def __init__(self, model_name: str = EMBED_MODEL):
        logger.info(f"Loading embedding model {model_name}")
        self.model_name = model_name
        self._model = SentenceTransformer(model_name)
        self.dimension = self._model.get_sentence_embedding_dimension()

    def embed(self, text: str) -> List[float]:
        vector = self._model.encode(text, normalize_embeddings=True)
        return vector.tolist()
