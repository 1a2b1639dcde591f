"""
Prompt pairs sent to the generative search service.

Each prompt kind asks for the block format the response parser understands,
so any change to a response format here has to be mirrored in
response_parser.py / ingredients_cleaner.py.
"""

from typing import Tuple

from ..models.allergen import ChemicalIdentity, PromptKind

MAX_PROMPT_SYNONYMS = 5

SIDE_EFFECTS_SYSTEM_PROMPT = """You are a medical researcher specializing in allergen identification and side effect documentation.

**RESEARCH STANDARDS:**
1. Prioritize peer-reviewed medical literature
2. Search PubMed, medical journals, and clinical databases
3. Focus on evidence-based findings with source attribution
4. Include prevalence rates and severity classifications when available
5. Distinguish between immediate and delayed reactions
6. Note population-specific variations (age, gender, genetics)

Never provide medical advice or diagnoses.

**Response Format for Each Side Effect:**
EFFECT: [specific reaction name]
SEVERITY: [MILD/MODERATE/SEVERE/LIFE_THREATENING]
PREVALENCE: [percentage or "rare/uncommon/common/very common"]
POPULATION: [affected groups - general/sensitive individuals/specific demographics]
MECHANISM: [how the reaction occurs - IgE-mediated/contact sensitivity/irritant/etc]
ONSET: [immediate/hours/days after exposure]
AREAS: [body areas affected, comma separated]
EVIDENCE: [study details, sample size, methodology]
SOURCE: [exact citation with DOI if available]

Exclude anecdotal reports, social media, and non-medical sources.
"""

OXIDATION_SYSTEM_PROMPT = """You are a chemical oxidation expert specializing in allergen formation.

**CRITICAL REQUIREMENTS:**
1. Search ONLY for peer-reviewed scientific sources
2. Focus on oxidation products that cause allergic reactions
3. Include IUPAC names and CAS numbers when available
4. Exclude speculative or unverified claims

**Response Format:**
For each oxidation product found:
PRODUCT: [exact chemical name]
CAS: [CAS number if available]
FORMED_BY: [oxidation mechanism]
ALLERGENICITY: [confirmed/suspected/unknown]
SOURCE: [research paper or database]
"""

PRODUCT_INGREDIENTS_SYSTEM_PROMPT = """You are a product ingredient researcher. Find the COMPLETE ingredient list
for consumer products from official sources.

Response Format:
INGREDIENT: [exact chemical name]
INGREDIENT: [exact chemical name]
"""


def _or_unknown(value) -> str:
    return str(value) if value else "unknown"


def side_effects_user_prompt(chemical: ChemicalIdentity) -> str:
    name = chemical.common_name
    prompt = f"""Research documented side effects and allergic reactions for {name}:

**Chemical Identifiers:**
- Common Name: {name}
- IUPAC Name: {_or_unknown(chemical.iupac_name)}
- CAS Number: {_or_unknown(chemical.cas_number)}
- Molecular Formula: {_or_unknown(chemical.molecular_formula)}
- PubChem CID: {_or_unknown(chemical.external_id)}

**Search Requirements:**
1. Focus on allergic reactions and sensitization
2. Include both immediate and delayed hypersensitivity
3. Search for oxidation product allergies (e.g., "{name.lower()} hydroperoxide", "{name.lower()} oxide")
4. Look for contact dermatitis and respiratory reactions
5. Include cross-reactivity with similar compounds

Report only scientifically documented effects with proper source attribution.
"""
    if chemical.synonyms:
        prompt += "\n**Alternative Names to Search:**\n"
        for synonym in chemical.synonyms[:MAX_PROMPT_SYNONYMS]:
            prompt += f"- {synonym}\n"
    return prompt


def oxidation_user_prompt(chemical: ChemicalIdentity) -> str:
    name = chemical.common_name
    return f"""Search for oxidation products of {name} (CAS: {_or_unknown(chemical.cas_number)}, SMILES: {_or_unknown(chemical.structure)}) that are known allergens.

**Search Focus:**
- Air oxidation products (exposure to oxygen)
- Light-induced oxidation (UV/visible light)
- Heat-induced oxidation products
- Products formed during storage or processing

**Key Terms to Include:**
- "oxidation products"
- "allergenic potential"
- "contact sensitization"
- "{name.lower()} hydroperoxide"
- "{name.lower()} oxide"

Only report oxidation products with documented evidence of allergenic properties.
"""


def product_ingredients_user_prompt(product_name: str) -> str:
    return f"""Find the complete ingredient list for: "{product_name}"
Use INCI names for cosmetics. List each ingredient starting with "INGREDIENT:"
"""


def build_prompt(kind: PromptKind, subject) -> Tuple[str, str]:
    """
    Return the (system, user) prompt pair for a prompt kind.

    Args:
        kind: Which response format to request
        subject: ChemicalIdentity, or the product name for PRODUCT_INGREDIENTS
    """
    if kind == PromptKind.SIDE_EFFECTS:
        return SIDE_EFFECTS_SYSTEM_PROMPT, side_effects_user_prompt(subject)
    if kind == PromptKind.OXIDATION_PRODUCTS:
        return OXIDATION_SYSTEM_PROMPT, oxidation_user_prompt(subject)
    if kind == PromptKind.PRODUCT_INGREDIENTS:
        return PRODUCT_INGREDIENTS_SYSTEM_PROMPT, product_ingredients_user_prompt(subject)
    raise ValueError(f"Unsupported prompt kind: {kind}")
