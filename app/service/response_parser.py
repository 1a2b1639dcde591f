"""
Response parser for generative search output.

The search service is asked to answer in labelled blocks:

    EFFECT: Allergic Contact Dermatitis
    SEVERITY: MODERATE
    PREVALENCE: 5%
    ...
    SOURCE: Smith et al. 2019, doi:10.1111/cod.13270

but the generator drifts between "LABEL:", "**LABEL:**", "**LABEL**:",
bulleted and numbered variants. All knowledge of that grammar lives here.
Parsing is best effort and never raises.
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Sequence
import logging
import re

from ..core.exceptions import ParseFailure
from ..models.allergen import (
    ChemicalIdentity, SideEffectRecord, Severity, SourceReference, VerificationStatus
)

logger = logging.getLogger(__name__)

EFFECT_LABELS = (
    "EFFECT", "SEVERITY", "PREVALENCE", "POPULATION", "MECHANISM",
    "ONSET", "AREAS", "EVIDENCE", "SOURCE",
)
OXIDATION_LABELS = ("PRODUCT", "CAS", "FORMED_BY", "ALLERGENICITY", "SOURCE")

BASE_CONFIDENCE = 70
SOURCED_CONFIDENCE = 85
MAX_CITATION_LENGTH = 500

# Checked in order: longer phrases first so "very common" and "uncommon"
# are not read as "common".
PREVALENCE_BUCKETS = (
    ("very common", 0.50),
    ("uncommon", 0.05),
    ("rare", 0.01),
    ("common", 0.20),
)

SEVERE_KEYWORDS = ("LIFE_THREATENING", "LIFE-THREATENING", "LIFE THREATENING", "SEVERE")

PLACEHOLDER_VALUES = {"n/a", "na", "none", "unknown", "not available", "not specified", "-"}

_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%")
_DOI_RE = re.compile(r"\b(10\.\d{4,9}/[^\s,;\"'<>]+)")
_YEAR_RE = re.compile(r"\b((?:19|20)\d{2})\b")
_URL_RE = re.compile(r"https?://[^\s)\]>\"']+")
_SEPARATOR_LINE_RE = re.compile(r"\n[ \t]*[-*_=]{3,}[ \t]*$")


def _alternatives(labels: Sequence[str]) -> str:
    return "|".join(sorted((re.escape(label) for label in labels), key=len, reverse=True))


def _marker_pattern(labels: Sequence[str], primary_label: str) -> re.Pattern:
    """
    Build the pattern that finds field markers for a label set.

    Two rules:
      - at a line start (after optional bullet, number or heading marks) the
        label matches in any case, e.g. "- **Severity:** mild"
      - mid-line only an upper-case sub-field label matches, e.g. "... SEVERITY: mild";
        the primary label must start a line so prose cannot open a block
    Both accept "LABEL:", "**LABEL:**" and "**LABEL**:".
    """
    alternatives = _alternatives(labels)
    inline_alternatives = _alternatives([label for label in labels if label != primary_label])
    line_start = (
        r"(?:^|(?<=\n))[ \t]*(?:#{1,6}[ \t]*)?(?:(?:[-*•]|\d+[.)])[ \t]+)?"
        r"(?:\*\*)?[ \t]*(?P<line_label>(?i:" + alternatives + r"))[ \t]*(?:\*\*)?[ \t]*:[ \t]*(?:\*\*)?"
    )
    inline = r"(?:\*\*)?\b(?P<inline_label>" + inline_alternatives + r")(?:\*\*)?[ \t]*:[ \t]*(?:\*\*)?"
    return re.compile(line_start + "|" + inline)


_EFFECT_MARKERS = _marker_pattern(EFFECT_LABELS, "EFFECT")
_OXIDATION_MARKERS = _marker_pattern(OXIDATION_LABELS, "PRODUCT")


def _find_markers(text: str, pattern: re.Pattern) -> List[tuple]:
    markers = []
    for match in pattern.finditer(text):
        label = (match.group("line_label") or match.group("inline_label")).upper()
        markers.append((label, match.start(), match.end()))
    return markers


def _clean_value(value: str) -> Optional[str]:
    value = _SEPARATOR_LINE_RE.sub("", value.strip())
    value = value.strip().strip("*_").strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1].strip()
    if not value or value.lower() in PLACEHOLDER_VALUES:
        return None
    return value


def split_blocks(text: str, pattern: re.Pattern, primary_label: str) -> List[Dict[str, str]]:
    """
    Split text into blocks on the primary label and collect each block's fields.

    Returns one dict per block mapping label -> raw value text. The first
    occurrence of a label inside a block wins.
    """
    markers = _find_markers(text, pattern)
    blocks: List[Dict[str, str]] = []
    current: Optional[Dict[str, str]] = None

    for index, (label, _start, value_start) in enumerate(markers):
        value_end = markers[index + 1][1] if index + 1 < len(markers) else len(text)
        value = text[value_start:value_end]

        if label == primary_label:
            current = {primary_label: value}
            blocks.append(current)
        elif current is not None and label not in current:
            current[label] = value

    return blocks


class ResponseParser:
    """Turns semi-structured search text into typed records."""

    def parse_side_effects(self, raw_text: str, chemical: ChemicalIdentity) -> List[SideEffectRecord]:
        """
        Parse every EFFECT block into a SideEffectRecord.

        Blocks without an effect label are dropped, and a block that fails to
        parse is logged and skipped; the rest are still returned.
        """
        side_effects: List[SideEffectRecord] = []
        try:
            blocks = split_blocks(raw_text or "", _EFFECT_MARKERS, "EFFECT")
        except Exception as e:
            logger.error(f"Error splitting side effects response for {chemical.common_name}: {e}")
            return side_effects

        logger.debug(f"Parsing response with {len(blocks)} EFFECT blocks")

        for index, block in enumerate(blocks):
            try:
                side_effect = self._parse_effect_block(block, chemical)
            except ParseFailure as e:
                logger.warning(f"Skipping effect block {index} for {chemical.common_name}: {e}")
                continue
            except Exception as e:
                logger.error(f"Unexpected error in effect block {index} for {chemical.common_name}: {e}")
                continue
            if side_effect is not None:
                side_effects.append(side_effect)

        logger.info(f"Parsed {len(side_effects)} side effects for {chemical.common_name}")
        return side_effects

    def _parse_effect_block(self, block: Dict[str, str], chemical: ChemicalIdentity) -> Optional[SideEffectRecord]:
        fields = {label: _clean_value(value) for label, value in block.items()}

        effect_name = fields.get("EFFECT")
        if effect_name is None:
            logger.debug("Effect block without effect name, skipping")
            return None
        # a name never spans lines; anything after the first line is stray text
        effect_name = effect_name.splitlines()[0].strip().strip("*").strip()
        if not effect_name:
            return None

        severity_text = fields.get("SEVERITY")
        prevalence_text = fields.get("PREVALENCE")
        areas_text = fields.get("AREAS")
        source_text = fields.get("SOURCE")

        try:
            record = SideEffectRecord(
                chemical_id=chemical.id,
                effect_type=effect_name,
                description=f"Documented allergic reaction: {effect_name}",
                severity=self.parse_severity(severity_text) if severity_text else Severity.MODERATE,
                prevalence_rate=self.parse_prevalence(prevalence_text) if prevalence_text else None,
                population=fields.get("POPULATION"),
                exposure_route=fields.get("MECHANISM"),
                onset=fields.get("ONSET"),
                affected_body_areas=self.parse_body_areas(areas_text),
                study_evidence=fields.get("EVIDENCE"),
                verification_status=VerificationStatus.UNVERIFIED,
                confidence_score=BASE_CONFIDENCE,
            )
        except ValueError as e:
            raise ParseFailure(f"invalid effect '{effect_name}': {e}") from e

        if source_text:
            source = self.parse_source_reference(source_text)
            record.sources = [source]
            record.verification_status = VerificationStatus.VERIFIED
            record.confidence_score = SOURCED_CONFIDENCE
            record.study_date = source.publication_date
            record.last_verified = datetime.now()

        return record

    def parse_oxidation_products(self, raw_text: str) -> List[str]:
        """Names from PRODUCT blocks, de-duplicated case-insensitively in order."""
        products: List[str] = []
        seen = set()
        try:
            blocks = split_blocks(raw_text or "", _OXIDATION_MARKERS, "PRODUCT")
        except Exception as e:
            logger.error(f"Error parsing oxidation products: {e}")
            return products

        for block in blocks:
            name = _clean_value(block.get("PRODUCT", ""))
            if not name:
                continue
            name = name.splitlines()[0].strip().strip("*").strip()
            if name and name.lower() not in seen:
                seen.add(name.lower())
                products.append(name)

        logger.info(f"Parsed {len(products)} oxidation products")
        return products

    def parse_severity(self, text: Optional[str]) -> Severity:
        severity = (text or "").upper()
        if any(keyword in severity for keyword in SEVERE_KEYWORDS):
            return Severity.SEVERE
        if "MODERATE" in severity:
            return Severity.MODERATE
        if "MILD" in severity:
            return Severity.MILD
        return Severity.MODERATE

    def parse_prevalence(self, text: Optional[str]) -> Optional[float]:
        """Fraction in [0, 1] from a percentage or a qualitative bucket, else None."""
        if not text:
            return None

        match = _PERCENT_RE.search(text)
        if match:
            rate = float(match.group(1)) / 100.0
            if 0.0 <= rate <= 1.0:
                return rate
            logger.debug(f"Ignoring out of range prevalence: {text}")
            return None

        prevalence = text.lower()
        for keyword, rate in PREVALENCE_BUCKETS:
            if keyword in prevalence:
                return rate

        logger.debug(f"Could not parse prevalence: {text}")
        return None

    def parse_body_areas(self, text: Optional[str]) -> List[str]:
        if not text:
            return []
        return [area.strip() for area in re.split(r"[,;\n]", text) if area.strip()]

    def parse_source_reference(self, text: str) -> SourceReference:
        """Pull DOI, year and URL out of a citation; the text itself is kept as the citation."""
        source = SourceReference(
            citation=text[:MAX_CITATION_LENGTH],
            study_type="Literature Review",
        )

        doi_match = _DOI_RE.search(text)
        if doi_match:
            source.doi = doi_match.group(1).rstrip(".)]")

        # digits inside DOIs and URLs are not publication years
        year_match = _YEAR_RE.search(_URL_RE.sub(" ", _DOI_RE.sub(" ", text)))
        if year_match:
            source.publication_date = date(int(year_match.group(1)), 1, 1)

        url_match = _URL_RE.search(text)
        if url_match:
            source.url = url_match.group(0).rstrip(".,;")

        return source
