import os
import sys

import pytest

# In-process database for anything that imports app.core.database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.database import init_models  # noqa: E402
from app.models.allergen import ChemicalIdentity, RegistryRecord  # noqa: E402


class ConstantEmbedder:
    """Every text gets the same vector, so every stored entry is a perfect similarity match."""

    dimension = 4

    def embed(self, text):
        return [1.0, 0.0, 0.0, 0.0]


class CharacterEmbedder:
    """Deterministic bag-of-letters vector; similar names get similar vectors."""

    dimension = 26

    def embed(self, text):
        vector = [0.0] * self.dimension
        for char in text.lower():
            if "a" <= char <= "z":
                vector[ord(char) - ord("a")] += 1.0
        return vector


class FakeRegistry:
    """Async context manager standing in for PubChemScraper."""

    def __init__(self, records=None, error=None):
        self.records = records or {}
        self.error = error
        self.calls = []

    def __call__(self):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def search_by_name(self, name):
        self.calls.append(name)
        if self.error:
            raise self.error
        return self.records.get(name.lower())


@pytest.fixture
def limonene():
    return ChemicalIdentity(
        id=1,
        external_id=22311,
        common_name="Limonene",
        cas_number="138-86-3",
        molecular_formula="C10H16",
        synonyms=["dipentene", "d-limonene"],
    )


@pytest.fixture
def limonene_record():
    return RegistryRecord(
        external_id=22311,
        iupac_name="1-methyl-4-prop-1-en-2-ylcyclohexene",
        cas_number="138-86-3",
        molecular_formula="C10H16",
        molecular_weight=136.23,
        structure="CC1=CCC(CC1)C(=C)C",
        synonyms=["limonene", "dipentene", "138-86-3"],
    )


@pytest.fixture
def limonene_side_effects_text():
    return """Here are the documented reactions for Limonene.

**EFFECT:** Allergic Contact Dermatitis
**SEVERITY:** MODERATE
**PREVALENCE:** 5%
**POPULATION:** General population, higher in fragrance-sensitive individuals
**MECHANISM:** Contact sensitivity to oxidised limonene
**ONSET:** 24-72 hours after exposure
**AREAS:** Hands, face, neck
**EVIDENCE:** Multicentre patch test study, n=2900
**SOURCE:** Karlberg AT et al. Contact Dermatitis. 2008. doi:10.1111/j.1600-0536.2008.01234.x

EFFECT: Respiratory Irritation
SEVERITY: Mild
PREVALENCE: rare
AREAS: respiratory tract; throat
"""


@pytest.fixture
def limonene_oxidation_text():
    return """PRODUCT: Limonene hydroperoxide
CAS: 5330-25-6
FORMED_BY: Air oxidation
ALLERGENICITY: confirmed
SOURCE: Contact Dermatitis 2002

PRODUCT: Carvone
ALLERGENICITY: confirmed

PRODUCT: limonene hydroperoxide
"""


@pytest.fixture
def constant_embedder():
    return ConstantEmbedder()


@pytest.fixture
def character_embedder():
    return CharacterEmbedder()


@pytest.fixture
def make_registry():
    return FakeRegistry


async def _make_session_factory():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_models(engine)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_session_factory():
    """Coroutine function building a fresh in-memory database with the exact-cache tables."""
    return _make_session_factory
