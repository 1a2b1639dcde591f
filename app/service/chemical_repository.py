from datetime import datetime
from typing import Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..core.database import async_session
from ..models.allergen import ChemicalIdentity
from ..models.allergen_tables import ChemicalRow

logger = logging.getLogger(__name__)


def _name_key(name: str) -> str:
    return name.strip().lower()


def _row_to_identity(row: ChemicalRow) -> ChemicalIdentity:
    return ChemicalIdentity(
        id=row.id,
        external_id=row.external_id,
        common_name=row.common_name,
        iupac_name=row.iupac_name,
        cas_number=row.cas_number,
        molecular_formula=row.molecular_formula,
        molecular_weight=row.molecular_weight,
        structure=row.structure,
        inchi=row.inchi,
        inchi_key=row.inchi_key,
        synonyms=list(row.synonyms or []),
        oxidation_products=list(row.oxidation_products or []),
        chemical_family=row.chemical_family,
        is_oxidation_product=bool(row.is_oxidation_product),
        created_at=row.created_at or datetime.now(),
        last_updated=row.last_updated,
    )


def _apply_identity(row: ChemicalRow, identity: ChemicalIdentity) -> None:
    row.external_id = identity.external_id
    row.common_name = identity.common_name
    row.common_name_key = _name_key(identity.common_name)
    row.iupac_name = identity.iupac_name
    row.cas_number = identity.cas_number
    row.molecular_formula = identity.molecular_formula
    row.molecular_weight = identity.molecular_weight
    row.structure = identity.structure
    row.inchi = identity.inchi
    row.inchi_key = identity.inchi_key
    row.synonyms = list(identity.synonyms)
    row.oxidation_products = list(identity.oxidation_products)
    row.chemical_family = identity.chemical_family
    row.is_oxidation_product = identity.is_oxidation_product
    row.created_at = identity.created_at
    row.last_updated = identity.last_updated


class SqlChemicalRepository:
    """Chemical identities persisted through async SQLAlchemy."""

    def __init__(self, session_factory=async_session):
        self.session_factory = session_factory

    async def get(self, chemical_id: int) -> Optional[ChemicalIdentity]:
        async with self.session_factory() as session:
            row = await session.get(ChemicalRow, chemical_id)
            return _row_to_identity(row) if row else None

    async def find_by_common_name(self, name: str) -> Optional[ChemicalIdentity]:
        async with self.session_factory() as session:
            query = select(ChemicalRow).where(ChemicalRow.common_name_key == _name_key(name))
            result = await session.execute(query)
            row = result.scalars().first()
            return _row_to_identity(row) if row else None

    async def find_by_external_id(self, external_id: int) -> Optional[ChemicalIdentity]:
        async with self.session_factory() as session:
            query = select(ChemicalRow).where(ChemicalRow.external_id == external_id)
            result = await session.execute(query)
            row = result.scalars().first()
            return _row_to_identity(row) if row else None

    async def save(self, identity: ChemicalIdentity) -> ChemicalIdentity:
        """
        Insert or update an identity.

        A concurrent insert of the same external id or name loses the race
        and gets the row that won it.
        """
        async with self.session_factory() as session:
            row = await session.get(ChemicalRow, identity.id) if identity.id is not None else None
            if row is None:
                row = ChemicalRow()
                session.add(row)
            _apply_identity(row, identity)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning(f"Identity for {identity.common_name} was saved concurrently, reusing existing row")
                existing = None
                if identity.external_id is not None:
                    existing = await self.find_by_external_id(identity.external_id)
                return existing or await self.find_by_common_name(identity.common_name)

            logger.info(f"Saved chemical {identity.common_name} (id={row.id}, CID={identity.external_id})")
            return identity.model_copy(update={"id": row.id})

    async def update_oxidation_products(self, identity: ChemicalIdentity, products: List[str]) -> ChemicalIdentity:
        updated = identity.model_copy(update={
            "oxidation_products": list(products),
            "last_updated": datetime.now(),
        })
        return await self.save(updated)


class InMemoryChemicalRepository:
    """Dictionary-backed identity store for tests and single-process runs."""

    def __init__(self):
        self._rows: Dict[int, ChemicalIdentity] = {}
        self._next_id = 1

    async def get(self, chemical_id: int) -> Optional[ChemicalIdentity]:
        identity = self._rows.get(chemical_id)
        return identity.model_copy(deep=True) if identity else None

    async def find_by_common_name(self, name: str) -> Optional[ChemicalIdentity]:
        key = _name_key(name)
        for identity in self._rows.values():
            if _name_key(identity.common_name) == key:
                return identity.model_copy(deep=True)
        return None

    async def find_by_external_id(self, external_id: int) -> Optional[ChemicalIdentity]:
        for identity in self._rows.values():
            if identity.external_id == external_id:
                return identity.model_copy(deep=True)
        return None

    async def save(self, identity: ChemicalIdentity) -> ChemicalIdentity:
        if identity.id is None:
            existing = None
            if identity.external_id is not None:
                existing = await self.find_by_external_id(identity.external_id)
            existing = existing or await self.find_by_common_name(identity.common_name)
            if existing:
                return existing
            identity = identity.model_copy(update={"id": self._next_id})
            self._next_id += 1
        else:
            self._next_id = max(self._next_id, identity.id + 1)
        self._rows[identity.id] = identity.model_copy(deep=True)
        return identity

    async def update_oxidation_products(self, identity: ChemicalIdentity, products: List[str]) -> ChemicalIdentity:
        updated = identity.model_copy(update={
            "oxidation_products": list(products),
            "last_updated": datetime.now(),
        })
        return await self.save(updated)

    def __len__(self):
        return len(self._rows)
