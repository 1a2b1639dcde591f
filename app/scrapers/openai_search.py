import logging
from typing import Optional

from openai import AsyncOpenAI

from ..core.config import OPENAI_API_KEY, OPENAI_SEARCH_MODEL
from ..core.exceptions import SearchError
from ..models.allergen import PromptKind
from ..service.prompts import build_prompt

logger = logging.getLogger(__name__)


class OpenAISearchClient:
    """
    Generative search backed by an OpenAI web-search model.

    Returns the raw response text; parsing, caching and the deadline belong to
    the caller.
    """

    def __init__(self, api_key: Optional[str] = OPENAI_API_KEY, model: str = OPENAI_SEARCH_MODEL,
                 client: Optional[AsyncOpenAI] = None, search_context_size: str = "medium"):
        self.api_key = api_key
        self.model = model
        self.search_context_size = search_context_size
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def search(self, kind: PromptKind, subject) -> str:
        """
        Run one search.

        Args:
            kind: Which block format to request
            subject: ChemicalIdentity, or a product name for PRODUCT_INGREDIENTS

        Returns:
            Raw response text

        Raises:
            SearchError: when the API call fails or returns no content
        """
        system_prompt, user_prompt = build_prompt(kind, subject)
        label = getattr(subject, "common_name", subject)
        logger.info(f"Searching {kind.value} for: {label}")

        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                web_search_options={"search_context_size": self.search_context_size},
            )
        except Exception as e:
            logger.error(f"OpenAI search error for {kind.value} of {label}: {str(e)}")
            raise SearchError(f"OpenAI search failed for {label}: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise SearchError(f"OpenAI returned an empty response for {label}")

        logger.debug(f"Raw OpenAI response for {label}: {content}")
        return content
