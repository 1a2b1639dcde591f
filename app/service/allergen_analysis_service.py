from typing import Dict, List
import logging
import time

from ..models.allergen import (
    BatchAnalysisResult, BatchSummary, IngredientAnalysis, ProductAnalysisResult, RiskLevel
)
from .cache_coordinator import CacheCoordinator
from .ingredients_cleaner import IngredientsCleaner
from .risk_aggregator import RiskAggregator, MEDICAL_DISCLAIMER

logger = logging.getLogger(__name__)

CHEMICAL_NOT_FOUND = "Chemical not found"
PRODUCT_NOT_FOUND = (
    "Could not find ingredient list for this product. "
    "Try using the full product name with brand (e.g., 'CeraVe Moisturizing Cream')"
)


class AllergenAnalysisService:
    """Builds ingredient, batch and product reports on top of the cache coordinator."""

    def __init__(self, coordinator: CacheCoordinator, aggregator: RiskAggregator = None,
                 cleaner: IngredientsCleaner = None):
        self.coordinator = coordinator
        self.aggregator = aggregator or RiskAggregator()
        self.cleaner = cleaner or IngredientsCleaner()

    async def analyze_ingredient(self, ingredient_name: str) -> IngredientAnalysis:
        """
        Complete allergen analysis for one ingredient name.

        An ingredient the registry cannot resolve gets an analysis with
        error set and risk UNKNOWN instead of an exception.
        """
        start_time = time.time()
        logger.info(f"Starting allergen analysis for: {ingredient_name}")

        chemical = await self.coordinator.resolve(ingredient_name)
        if chemical is None:
            logger.warning(f"Chemical not found: {ingredient_name}")
            return IngredientAnalysis(
                ingredient=ingredient_name,
                error=CHEMICAL_NOT_FOUND,
                disclaimer=MEDICAL_DISCLAIMER,
                processing_time_ms=(time.time() - start_time) * 1000,
            )

        side_effects = await self.coordinator.fetch_side_effects(chemical)
        oxidation_products = await self.coordinator.fetch_oxidation_products(chemical)
        chemical = chemical.model_copy(update={"oxidation_products": oxidation_products})

        assessment = self.aggregator.assess(side_effects)
        analysis = IngredientAnalysis(
            ingredient=ingredient_name,
            chemical=chemical,
            side_effects=side_effects,
            oxidation_products=oxidation_products,
            risk_assessment=assessment,
            risk_level=assessment.risk_level,
            warnings=self.aggregator.warnings(chemical, side_effects),
            disclaimer=MEDICAL_DISCLAIMER,
            processing_time_ms=(time.time() - start_time) * 1000,
        )

        logger.info(
            f"Completed allergen analysis for: {ingredient_name} - found {len(side_effects)} side effects, "
            f"{len(oxidation_products)} oxidation products in {analysis.processing_time_ms:.0f}ms"
        )
        return analysis

    async def analyze_batch(self, ingredients: List[str]) -> BatchAnalysisResult:
        results: Dict[str, IngredientAnalysis] = {}
        for ingredient in ingredients:
            logger.info(f"Analyzing ingredient in batch: {ingredient}")
            results[ingredient] = await self.analyze_ingredient(ingredient)

        high_risk = sum(1 for r in results.values() if r.risk_level == RiskLevel.HIGH)
        return BatchAnalysisResult(
            results=results,
            summary=BatchSummary(
                total_ingredients=len(results),
                high_risk_ingredients=high_risk,
                overall_risk_level=self.aggregator.batch_risk(high_risk, len(results)),
            ),
            disclaimer=MEDICAL_DISCLAIMER,
        )

    async def analyze_product(self, product_name: str) -> ProductAnalysisResult:
        """
        Find a product's ingredient list with generative search, then analyse
        every ingredient through the cache tiers.
        """
        logger.info(f"Starting product analysis for: {product_name}")

        raw = await self.coordinator.search_product_ingredients(product_name)
        ingredients = self.cleaner.extract_from_search_response(raw) if raw else []
        logger.info(f"Parsed {len(ingredients)} ingredients for product: {product_name}")

        if not ingredients:
            return ProductAnalysisResult(
                product_name=product_name,
                overall_risk_level=RiskLevel.UNKNOWN,
                error=PRODUCT_NOT_FOUND,
                disclaimer=MEDICAL_DISCLAIMER,
            )

        detailed_analysis: Dict[str, IngredientAnalysis] = {}
        high_risk_count = 0
        total_analyzed = 0

        for ingredient in ingredients:
            logger.info(f"Analyzing ingredient in product: {ingredient}")
            analysis = await self.analyze_ingredient(ingredient)
            detailed_analysis[ingredient] = analysis
            if analysis.error:
                continue
            total_analyzed += 1
            if analysis.risk_level == RiskLevel.HIGH:
                high_risk_count += 1

        logger.info(
            f"Completed product analysis for: {product_name} - "
            f"{total_analyzed} ingredients, {high_risk_count} high risk"
        )
        return ProductAnalysisResult(
            product_name=product_name,
            total_ingredients=total_analyzed,
            high_risk_ingredients=high_risk_count,
            overall_risk_level=self.aggregator.overall_risk(high_risk_count, total_analyzed),
            ingredients=ingredients,
            detailed_analysis=detailed_analysis,
            recommendations=self.aggregator.product_recommendations(high_risk_count, total_analyzed),
            disclaimer=MEDICAL_DISCLAIMER,
        )
