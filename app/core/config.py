import os

MYSQL_USER = os.getenv("MYSQL_USER", "root")
MYSQL_PASSWORD = os.getenv("MYSQL_PASSWORD", "")
MYSQL_HOST = os.getenv("MYSQL_HOST", "localhost")
MYSQL_PORT = os.getenv("MYSQL_PORT", "3306")
MYSQL_DB = os.getenv("MYSQL_DB", "allergen_intelligence")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+aiomysql://{MYSQL_USER}:{MYSQL_PASSWORD}@{MYSQL_HOST}:{MYSQL_PORT}/{MYSQL_DB}"
)

# ":memory:" keeps the vector index inside the process
QDRANT_URL = os.getenv("QDRANT_URL", ":memory:")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
SEMANTIC_CACHE_COLLECTION = os.getenv("SEMANTIC_CACHE_COLLECTION", "allergen_cache")
EMBED_MODEL = os.getenv("EMBED_MODEL", "all-MiniLM-L6-v2")

SEMANTIC_CACHE_TOP_K = int(os.getenv("SEMANTIC_CACHE_TOP_K", "10"))
SEMANTIC_CACHE_SIMILARITY_THRESHOLD = float(os.getenv("SEMANTIC_CACHE_SIMILARITY_THRESHOLD", "0.5"))
SEMANTIC_CACHE_TTL_DAYS = int(os.getenv("SEMANTIC_CACHE_TTL_DAYS", "30"))
SEMANTIC_CACHE_IGNORE_STALE = os.getenv("SEMANTIC_CACHE_IGNORE_STALE", "false").lower() == "true"

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_SEARCH_MODEL = os.getenv("OPENAI_SEARCH_MODEL", "gpt-4o-search-preview")
SEARCH_TIMEOUT_SECONDS = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "45"))
COALESCE_REQUESTS = os.getenv("COALESCE_REQUESTS", "true").lower() == "true"

PUBCHEM_BASE_URL = os.getenv("PUBCHEM_BASE_URL", "https://pubchem.ncbi.nlm.nih.gov/rest/pug")
MAX_SYNONYMS = int(os.getenv("MAX_SYNONYMS", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
