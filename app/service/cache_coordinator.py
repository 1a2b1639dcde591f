from typing import Callable, Dict, List, Optional, Tuple
import asyncio
import logging
import time

from ..core.config import SEARCH_TIMEOUT_SECONDS, COALESCE_REQUESTS
from ..core.exceptions import IdentityUnresolved, SearchTimeout
from ..models.allergen import ChemicalIdentity, DataKind, FetchState, PromptKind
from ..scrapers.pubchem_scraper import PubChemScraper
from .response_parser import ResponseParser

logger = logging.getLogger(__name__)


class CacheCoordinator:
    """
    Three-tier lookup for allergen data.

    TIER 1: exact cache (database, no cost)
    TIER 2: semantic cache (vector index of raw search responses, no cost)
    TIER 3: generative search (slow, paid, time-bounded)

    Every failure resolves to a miss or an empty list; nothing raises to the caller.
    """

    def __init__(self, chemical_repository, exact_cache, semantic_cache, search_client,
                 registry_factory: Callable = PubChemScraper,
                 parser: Optional[ResponseParser] = None,
                 search_timeout: float = SEARCH_TIMEOUT_SECONDS,
                 coalesce_requests: bool = COALESCE_REQUESTS):
        self.chemical_repository = chemical_repository
        self.exact_cache = exact_cache
        self.semantic_cache = semantic_cache
        self.search_client = search_client
        self.registry_factory = registry_factory
        self.parser = parser or ResponseParser()
        self.search_timeout = search_timeout
        self.coalesce_requests = coalesce_requests
        self._in_flight: Dict[Tuple, asyncio.Task] = {}

    async def resolve(self, raw_name: str) -> Optional[ChemicalIdentity]:
        """
        Map a free-text name to a persisted ChemicalIdentity.

        Known names come from the identity store. Otherwise the registry is
        asked, and if its CID already belongs to a stored identity (under
        another name) that identity is returned instead of a duplicate.

        Returns:
            The identity, or None when the registry does not know the name
            or either the registry or the identity store cannot be reached
        """
        name = (raw_name or "").strip()
        if not name:
            return None

        try:
            existing = await self.chemical_repository.find_by_common_name(name)
        except Exception as e:
            logger.warning(f"Chemical store lookup failed for {name}: {e}")
            return None
        if existing:
            logger.info(f"Using existing chemical from database: {name}")
            return existing

        try:
            async with self.registry_factory() as registry:
                record = await registry.search_by_name(name)
        except Exception as e:
            logger.warning(f"Chemical registry lookup failed for {name}: {e}")
            return None

        if record is None:
            logger.info(f"Chemical not found in registry: {name}")
            return None

        try:
            existing = await self.chemical_repository.find_by_external_id(record.external_id)
        except Exception as e:
            logger.warning(f"Chemical store lookup failed for CID {record.external_id}: {e}")
            return None
        if existing:
            logger.info(f"Found existing chemical by CID: {record.external_id} for name: {name}")
            return existing

        identity = ChemicalIdentity(
            common_name=name,
            external_id=record.external_id,
            iupac_name=record.iupac_name,
            cas_number=record.cas_number,
            molecular_formula=record.molecular_formula,
            molecular_weight=record.molecular_weight,
            structure=record.structure,
            inchi=record.inchi,
            inchi_key=record.inchi_key,
            synonyms=list(record.synonyms),
        )
        try:
            return await self.chemical_repository.save(identity)
        except Exception as e:
            # still usable for tiers 2 and 3, just not storable in tier 1
            logger.error(f"Could not persist chemical {name}: {e}")
            return identity

    async def fetch(self, chemical: ChemicalIdentity, kind: DataKind) -> list:
        """
        Run the three-tier sequence for one chemical and data kind.

        Returns:
            SideEffectRecords for SIDE_EFFECTS, product names for
            OXIDATION_PRODUCTS; empty when every tier misses or fails
        """
        self._trace(chemical, kind, FetchState.UNRESOLVED)
        if not chemical.is_resolved:
            resolved = await self.resolve(chemical.common_name)
            if resolved is not None and resolved.is_resolved:
                chemical = resolved

        # TIER 1
        if chemical.is_resolved:
            try:
                records = await self.exact_cache.lookup(chemical, kind)
            except Exception as e:
                logger.error(f"Exact cache lookup failed for {chemical.common_name}: {e}")
                records = None
            if records:
                logger.info(f"DATABASE CACHE HIT: {len(records)} {kind.value} for {chemical.common_name}")
                self._trace(chemical, kind, FetchState.DONE)
                return records
        self._trace(chemical, kind, FetchState.TIER1_MISS)

        # TIER 2
        try:
            cached = await self.semantic_cache.get(chemical.common_name, kind)
        except Exception as e:
            logger.error(f"Semantic cache lookup failed for {chemical.common_name}: {e}")
            cached = None
        if cached:
            records = self._parse(cached, chemical, kind)
            if records:
                logger.info(f"VECTOR CACHE HIT: {len(records)} {kind.value} for {chemical.common_name}")
                await self._store_exact(chemical, kind, records)
                self._trace(chemical, kind, FetchState.DONE)
                return records
            logger.warning(f"Cached {kind.value} for {chemical.common_name} could not be parsed, searching fresh")
        self._trace(chemical, kind, FetchState.TIER2_MISS)

        # TIER 3
        records = await self._search_coalesced(chemical, kind)
        self._trace(chemical, kind, FetchState.DONE)
        return records

    async def fetch_side_effects(self, chemical: ChemicalIdentity) -> list:
        return await self.fetch(chemical, DataKind.SIDE_EFFECTS)

    async def fetch_oxidation_products(self, chemical: ChemicalIdentity) -> list:
        return await self.fetch(chemical, DataKind.OXIDATION_PRODUCTS)

    async def search_product_ingredients(self, product_name: str) -> Optional[str]:
        """Raw ingredient-list search for a product; None on timeout or error."""
        try:
            return await self._run_search(PromptKind.PRODUCT_INGREDIENTS, product_name)
        except Exception as e:
            logger.error(f"Ingredient list search failed for {product_name}: {e}")
            return None

    async def _search_coalesced(self, chemical: ChemicalIdentity, kind: DataKind) -> list:
        """
        Run tier 3, sharing one in-flight search per (chemical, kind).

        The search runs as its own task behind asyncio.shield, so a caller
        that is cancelled stops waiting but the result is still cached.
        """
        key = (chemical.id if chemical.is_resolved else chemical.common_name.strip().lower(), kind)

        task = self._in_flight.get(key) if self.coalesce_requests else None
        if task is None:
            task = asyncio.create_task(self._search_and_populate(chemical, kind))
            if self.coalesce_requests:
                self._in_flight[key] = task
                task.add_done_callback(lambda done: self._release(key, done))
        else:
            logger.info(f"Joining in-flight {kind.value} search for {chemical.common_name}")

        records = await asyncio.shield(task)
        return list(records)

    def _release(self, key: Tuple, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _search_and_populate(self, chemical: ChemicalIdentity, kind: DataKind) -> list:
        self._trace(chemical, kind, FetchState.TIER3_PENDING)
        logger.info(f"CACHE MISS: searching {kind.value} for {chemical.common_name}")
        started = time.time()

        try:
            raw = await self._run_search(PromptKind(kind.value), chemical)
        except SearchTimeout as e:
            self._trace(chemical, kind, FetchState.TIER3_TIMEOUT)
            logger.error(str(e))
            return []
        except Exception as e:
            self._trace(chemical, kind, FetchState.TIER3_ERROR)
            logger.error(f"Search error for {kind.value} of {chemical.common_name}: {e}")
            return []

        self._trace(chemical, kind, FetchState.TIER3_SUCCESS)
        logger.info(f"Search for {chemical.common_name} took {(time.time() - started):.1f}s")

        await self.semantic_cache.put(chemical.common_name, kind, raw)

        records = self._parse(raw, chemical, kind)
        if records:
            await self._store_exact(chemical, kind, records)
        else:
            logger.warning(f"No {kind.value} found for: {chemical.common_name}")
        return records

    async def _run_search(self, kind: PromptKind, subject) -> str:
        try:
            return await asyncio.wait_for(self.search_client.search(kind, subject), timeout=self.search_timeout)
        except asyncio.TimeoutError as e:
            label = getattr(subject, "common_name", subject)
            raise SearchTimeout(
                f"Search timed out after {self.search_timeout}s for {kind.value} of {label}"
            ) from e

    def _parse(self, raw: str, chemical: ChemicalIdentity, kind: DataKind) -> list:
        if kind == DataKind.SIDE_EFFECTS:
            return self.parser.parse_side_effects(raw, chemical)
        return self.parser.parse_oxidation_products(raw)

    async def _store_exact(self, chemical: ChemicalIdentity, kind: DataKind, records: List) -> None:
        try:
            await self.exact_cache.store(chemical, kind, records)
            logger.info(f"Persisted {len(records)} {kind.value} to database for: {chemical.common_name}")
        except IdentityUnresolved as e:
            logger.warning(f"Not persisting {kind.value}: {e}")
        except Exception as e:
            logger.error(f"Could not persist {kind.value} for {chemical.common_name}: {e}")

    def _trace(self, chemical: ChemicalIdentity, kind: DataKind, state: FetchState) -> None:
        logger.debug(f"fetch {chemical.common_name}/{kind.value}: {state.value}")
