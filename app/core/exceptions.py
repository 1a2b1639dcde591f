class AllergenCacheError(Exception):
    """Base class for every error raised inside the allergen cache core."""


class IdentityUnresolved(AllergenCacheError):
    """Raised when records are stored for an identity that has no persisted key yet."""

    def __init__(self, common_name: str):
        super().__init__(f"Chemical identity '{common_name}' must be resolved before storing records")
        self.common_name = common_name


class CacheUnavailable(AllergenCacheError):
    """Vector index or store could not be reached. Callers treat it as a miss."""


class SearchError(AllergenCacheError):
    """Generative search failed or returned nothing usable."""


class SearchTimeout(SearchError):
    """Generative search did not answer before the deadline."""


class ParseFailure(AllergenCacheError):
    """A single block of search output could not be parsed."""


class RegistryUnavailable(AllergenCacheError):
    """Chemical registry request failed at the transport level."""

    def __init__(self, message: str, status_code: int = 503):
        super().__init__(message)
        self.status_code = status_code
