import pytest
from datetime import date
from unittest.mock import patch

from app.core.exceptions import ParseFailure
from app.models.allergen import Severity, VerificationStatus
from app.service.response_parser import ResponseParser


class TestResponseParser:

    @pytest.fixture
    def parser(self):
        return ResponseParser()

    def test_parse_side_effects_well_formed_blocks(self, parser, limonene, limonene_side_effects_text):
        records = parser.parse_side_effects(limonene_side_effects_text, limonene)

        assert len(records) == 2

        dermatitis = records[0]
        assert dermatitis.effect_type == "Allergic Contact Dermatitis"
        assert dermatitis.severity == Severity.MODERATE
        assert dermatitis.prevalence_rate == pytest.approx(0.05)
        assert dermatitis.affected_body_areas == ["Hands", "face", "neck"]
        assert dermatitis.exposure_route == "Contact sensitivity to oxidised limonene"
        assert dermatitis.chemical_id == limonene.id
        assert dermatitis.verification_status == VerificationStatus.VERIFIED
        assert dermatitis.confidence_score == 85
        assert dermatitis.sources[0].doi == "10.1111/j.1600-0536.2008.01234.x"
        assert dermatitis.sources[0].publication_date == date(2008, 1, 1)
        assert dermatitis.study_date == date(2008, 1, 1)

        irritation = records[1]
        assert irritation.effect_type == "Respiratory Irritation"
        assert irritation.severity == Severity.MILD
        assert irritation.prevalence_rate == pytest.approx(0.01)
        assert irritation.affected_body_areas == ["respiratory tract", "throat"]
        assert irritation.verification_status == VerificationStatus.UNVERIFIED
        assert irritation.confidence_score == 70
        assert irritation.sources == []

    def test_parse_side_effects_mixed_label_styles(self, parser, limonene):
        text = (
            "1. **Effect**: Eczema\n"
            "- **Severity:** severe in children\n"
            "**PREVALENCE:** uncommon\n"
        )
        records = parser.parse_side_effects(text, limonene)

        assert len(records) == 1
        assert records[0].effect_type == "Eczema"
        assert records[0].severity == Severity.SEVERE
        assert records[0].prevalence_rate == pytest.approx(0.05)

    def test_parse_side_effects_skips_block_without_effect_label(self, parser, limonene):
        text = """SEVERITY: SEVERE
PREVALENCE: 10%

EFFECT: Urticaria
SEVERITY: MILD
"""
        records = parser.parse_side_effects(text, limonene)

        assert len(records) == 1
        assert records[0].effect_type == "Urticaria"
        assert records[0].severity == Severity.MILD

    def test_parse_side_effects_one_good_one_malformed(self, parser, limonene):
        text = """EFFECT: Contact Urticaria
SEVERITY: MODERATE
PREVALENCE: 2%

Another reaction was reported without a name
SEVERITY: garbled ###
AREAS:
"""
        records = parser.parse_side_effects(text, limonene)

        assert len(records) == 1
        assert records[0].effect_type == "Contact Urticaria"

    def test_parse_side_effects_never_raises(self, parser, limonene):
        assert parser.parse_side_effects("", limonene) == []
        assert parser.parse_side_effects(None, limonene) == []
        assert parser.parse_side_effects("No documented reactions were found.", limonene) == []
        assert parser.parse_side_effects("EFFECT:\nEFFECT: ***\n", limonene) == []

    def test_parse_side_effects_ignores_effect_label_inside_prose(self, parser, limonene):
        text = """EFFECT: Contact Dermatitis
SEVERITY: MILD
EVIDENCE: Limonene is a sensitising EFFECT: it is a known allergen.
"""
        records = parser.parse_side_effects(text, limonene)

        assert [r.effect_type for r in records] == ["Contact Dermatitis"]
        assert records[0].severity == Severity.MILD
        assert records[0].study_evidence.startswith("Limonene is a sensitising EFFECT")

    def test_parse_side_effects_skips_invalid_block(self, parser, limonene):
        text = "EFFECT: Eczema\nSEVERITY: odd\n\nEFFECT: Urticaria\nSEVERITY: MILD\n"

        with patch.object(ResponseParser, "parse_severity", side_effect=["not-a-severity", Severity.MILD]):
            records = parser.parse_side_effects(text, limonene)

        assert [r.effect_type for r in records] == ["Urticaria"]

    def test_invalid_block_raises_parse_failure(self, parser, limonene):
        with patch.object(ResponseParser, "parse_severity", return_value="not-a-severity"):
            with pytest.raises(ParseFailure):
                parser._parse_effect_block({"EFFECT": "Eczema", "SEVERITY": "odd"}, limonene)

    def test_parse_side_effects_defaults(self, parser, limonene):
        records = parser.parse_side_effects("EFFECT: Skin irritation\nPREVALENCE: not available", limonene)

        assert len(records) == 1
        assert records[0].severity == Severity.MODERATE
        assert records[0].prevalence_rate is None
        assert records[0].affected_body_areas == []

    @pytest.mark.parametrize("text, expected", [
        ("life-threatening anaphylaxis", Severity.SEVERE),
        ("LIFE_THREATENING", Severity.SEVERE),
        ("Severe", Severity.SEVERE),
        ("moderate to high", Severity.MODERATE),
        ("mild", Severity.MILD),
        ("variable", Severity.MODERATE),
        ("", Severity.MODERATE),
    ])
    def test_parse_severity(self, parser, text, expected):
        assert parser.parse_severity(text) == expected

    @pytest.mark.parametrize("text, expected", [
        ("35%", 0.35),
        ("about 1.5 % of patients", 0.015),
        ("rare", 0.01),
        ("Very common", 0.50),
        ("uncommon", 0.05),
        ("common in adults", 0.20),
    ])
    def test_parse_prevalence(self, parser, text, expected):
        assert parser.parse_prevalence(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["not reported", "", None, "250%"])
    def test_parse_prevalence_unset(self, parser, text):
        assert parser.parse_prevalence(text) is None

    def test_parse_source_reference_extracts_doi_year_url(self, parser):
        text = "Smith J. Fragrance allergy. Contact Dermatitis 2019; https://doi.org/10.1111/cod.13270"
        source = parser.parse_source_reference(text)

        assert source.doi == "10.1111/cod.13270"
        assert source.publication_date == date(2019, 1, 1)
        assert source.url == "https://doi.org/10.1111/cod.13270"
        assert source.study_type == "Literature Review"
        assert source.citation == text

    def test_parse_source_reference_truncates_citation(self, parser):
        source = parser.parse_source_reference("x" * 800)

        assert len(source.citation) == 500
        assert source.doi is None
        assert source.publication_date is None

    def test_parse_oxidation_products_deduplicates(self, parser, limonene_oxidation_text):
        products = parser.parse_oxidation_products(limonene_oxidation_text)

        assert products == ["Limonene hydroperoxide", "Carvone"]

    def test_parse_oxidation_products_empty(self, parser):
        assert parser.parse_oxidation_products("") == []
        assert parser.parse_oxidation_products("No oxidation products documented.") == []
