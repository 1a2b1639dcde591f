from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict, List

from ..core.embeddings import SentenceTransformerEmbedder
from ..core.vector_store import create_qdrant_client
from ..models.allergen import (
    BatchAnalysisRequest, BatchAnalysisResult, ChemicalIdentity, IngredientAnalysis,
    ProductAnalysisRequest, ProductAnalysisResult, SideEffectRecord
)
from ..scrapers.openai_search import OpenAISearchClient
from ..service.allergen_analysis_service import AllergenAnalysisService, CHEMICAL_NOT_FOUND
from ..service.cache_coordinator import CacheCoordinator
from ..service.chemical_repository import SqlChemicalRepository
from ..service.exact_cache import SqlExactCache
from ..service.risk_aggregator import MEDICAL_DISCLAIMER
from ..service.semantic_cache import SemanticCache

router = APIRouter(prefix="/allergen", tags=["allergen"])

_analysis_service = None


def get_analysis_service() -> AllergenAnalysisService:
    """Builds the production service once; the embedding model load is expensive."""
    global _analysis_service
    if _analysis_service is None:
        chemical_repository = SqlChemicalRepository()
        coordinator = CacheCoordinator(
            chemical_repository=chemical_repository,
            exact_cache=SqlExactCache(chemical_repository),
            semantic_cache=SemanticCache(create_qdrant_client(), SentenceTransformerEmbedder()),
            search_client=OpenAISearchClient(),
        )
        _analysis_service = AllergenAnalysisService(coordinator)
    return _analysis_service


@router.get("/analyze/{ingredient_name}", response_model=IngredientAnalysis)
async def analyze_allergen(
    ingredient_name: str,
    service: AllergenAnalysisService = Depends(get_analysis_service)
):
    """Complete allergen analysis: identity, side effects, oxidation products, risk and warnings."""
    analysis = await service.analyze_ingredient(ingredient_name)
    if analysis.error == CHEMICAL_NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Chemical not found: {ingredient_name}")
    return analysis


@router.post("/analyze-batch", response_model=BatchAnalysisResult)
async def analyze_batch(
    request: BatchAnalysisRequest,
    service: AllergenAnalysisService = Depends(get_analysis_service)
):
    return await service.analyze_batch(request.ingredients)


@router.post("/analyze-product", response_model=ProductAnalysisResult)
async def analyze_product(
    request: ProductAnalysisRequest,
    service: AllergenAnalysisService = Depends(get_analysis_service)
):
    """Find a product's ingredient list and analyse each ingredient."""
    if not request.product_name or not request.product_name.strip():
        raise HTTPException(status_code=400, detail="Product name is required")
    return await service.analyze_product(request.product_name.strip())


def _server_identity(chemical: ChemicalIdentity) -> ChemicalIdentity:
    """Drop the client-supplied row id; the coordinator resolves the name itself."""
    return chemical.model_copy(update={"id": None})


@router.post("/side-effects", response_model=List[SideEffectRecord])
async def search_side_effects(
    chemical: ChemicalIdentity,
    service: AllergenAnalysisService = Depends(get_analysis_service)
):
    return await service.coordinator.fetch_side_effects(_server_identity(chemical))


@router.post("/oxidation-products", response_model=List[str])
async def search_oxidation_products(
    chemical: ChemicalIdentity,
    service: AllergenAnalysisService = Depends(get_analysis_service)
):
    return await service.coordinator.fetch_oxidation_products(_server_identity(chemical))


@router.get("/search/health", response_model=Dict[str, Any])
async def search_health():
    return {
        "status": "operational",
        "search_capabilities": ["allergen_effects", "oxidation_products", "clinical_data", "product_analysis"],
        "disclaimer": MEDICAL_DISCLAIMER,
    }


@router.get("/cache/stats", response_model=Dict[str, Any])
async def cache_stats(service: AllergenAnalysisService = Depends(get_analysis_service)):
    """Semantic cache configuration and entry count."""
    return await service.coordinator.semantic_cache.stats()
