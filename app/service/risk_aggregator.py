from typing import List, Sequence

from ..models.allergen import ChemicalIdentity, RiskAssessment, RiskLevel, Severity, SideEffectRecord

RESPIRATORY_KEYWORDS = ("respiratory", "lung", "airway", "bronch", "nasal", "throat", "breath")

OXIDATION_WARNING = (
    "OXIDATION ALERT: This chemical forms allergenic oxidation products when exposed to air or light."
)
SEVERE_WARNING = (
    "SEVERE REACTION RISK: This chemical has been associated with severe allergic reactions."
)
RESPIRATORY_WARNING = (
    "RESPIRATORY ALERT: May cause breathing difficulties or respiratory sensitization."
)

MEDICAL_DISCLAIMER = (
    "MEDICAL DISCLAIMER: This information is for educational and research purposes only. "
    "It does not constitute medical advice, diagnosis, or treatment recommendations. "
    "Always consult qualified healthcare professionals for medical decisions."
)

# more analysed ingredients than this raises a clean product to MODERATE
COMPLEX_PRODUCT_THRESHOLD = 5
MANY_INGREDIENTS_THRESHOLD = 15


class RiskAggregator:
    """Rule-based risk level, assessment and warnings from side effect records."""

    def risk_level(self, side_effects: Sequence[SideEffectRecord]) -> RiskLevel:
        if not side_effects:
            return RiskLevel.UNKNOWN
        if any(effect.severity >= Severity.SEVERE for effect in side_effects):
            return RiskLevel.HIGH
        if any(effect.severity >= Severity.MODERATE for effect in side_effects):
            return RiskLevel.MODERATE
        return RiskLevel.LOW

    def assess(self, side_effects: Sequence[SideEffectRecord]) -> RiskAssessment:
        """
        Combine records into a RiskAssessment.

        Average prevalence only counts records that have a prevalence; it is
        None when none do.
        """
        prevalences = [e.prevalence_rate for e in side_effects if e.prevalence_rate is not None]
        return RiskAssessment(
            risk_level=self.risk_level(side_effects),
            max_severity_level=max((e.severity.ordinal for e in side_effects), default=0),
            average_prevalence=sum(prevalences) / len(prevalences) if prevalences else None,
            total_reactions_found=len(side_effects),
        )

    def warnings(self, chemical: ChemicalIdentity, side_effects: Sequence[SideEffectRecord]) -> List[str]:
        warnings = []

        if chemical.oxidation_products:
            warnings.append(OXIDATION_WARNING)

        if any(effect.severity >= Severity.SEVERE for effect in side_effects):
            warnings.append(SEVERE_WARNING)

        has_respiratory = any(
            keyword in area.lower()
            for effect in side_effects
            for area in effect.affected_body_areas
            for keyword in RESPIRATORY_KEYWORDS
        )
        if has_respiratory:
            warnings.append(RESPIRATORY_WARNING)

        return warnings

    def overall_risk(self, high_risk_count: int, total_analyzed: int) -> RiskLevel:
        """Product-level risk from per-ingredient results."""
        if total_analyzed == 0:
            return RiskLevel.UNKNOWN
        if high_risk_count > 0:
            return RiskLevel.HIGH
        if total_analyzed > COMPLEX_PRODUCT_THRESHOLD:
            return RiskLevel.MODERATE
        return RiskLevel.LOW

    def batch_risk(self, high_risk_count: int, total: int) -> RiskLevel:
        """Batch summaries only distinguish HIGH from LOW."""
        if total == 0:
            return RiskLevel.UNKNOWN
        return RiskLevel.HIGH if high_risk_count > 0 else RiskLevel.LOW

    def product_recommendations(self, high_risk_count: int, total_analyzed: int) -> List[str]:
        recommendations = []

        if high_risk_count == 0:
            recommendations.append("No high-risk allergens detected in this formulation")
            recommendations.append("Perform patch test before first use if you have sensitive skin")
        else:
            recommendations.append(f"This product contains {high_risk_count} high-risk allergen(s)")
            recommendations.append("Consult with a dermatologist before use if you have known allergies")
            recommendations.append("Perform a patch test on inner arm for 48 hours before facial application")

        if total_analyzed > MANY_INGREDIENTS_THRESHOLD:
            recommendations.append("Complex formulation with many ingredients - monitor for reactions")

        recommendations.append("Always check individual ingredient sensitivities before use")
        return recommendations
