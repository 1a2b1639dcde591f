from typing import Dict, List, Optional, Union
import logging

from sqlalchemy import select, delete

from ..core.database import async_session
from ..core.exceptions import IdentityUnresolved
from ..models.allergen import ChemicalIdentity, DataKind, SideEffectRecord, Severity, VerificationStatus
from ..models.allergen_tables import SideEffectRow

logger = logging.getLogger(__name__)

Records = Union[List[SideEffectRecord], List[str]]


def _row_to_record(row: SideEffectRow) -> SideEffectRecord:
    return SideEffectRecord(
        chemical_id=row.chemical_id,
        effect_type=row.effect_type,
        description=row.description,
        severity=Severity(row.severity),
        prevalence_rate=row.prevalence_rate,
        population=row.population,
        exposure_route=row.exposure_route,
        onset=row.onset,
        affected_body_areas=list(row.affected_body_areas or []),
        study_evidence=row.study_evidence,
        sources=list(row.sources or []),
        verification_status=VerificationStatus(row.verification_status or VerificationStatus.UNVERIFIED.value),
        confidence_score=row.confidence_score if row.confidence_score is not None else 70,
        study_date=row.study_date,
        last_verified=row.last_verified,
    )


def _record_to_row(record: SideEffectRecord, chemical_id: int) -> SideEffectRow:
    return SideEffectRow(
        chemical_id=chemical_id,
        effect_type=record.effect_type,
        description=record.description,
        severity=record.severity.value,
        prevalence_rate=record.prevalence_rate,
        population=record.population,
        exposure_route=record.exposure_route,
        onset=record.onset,
        affected_body_areas=list(record.affected_body_areas),
        study_evidence=record.study_evidence,
        sources=[source.model_dump(mode="json") for source in record.sources],
        verification_status=record.verification_status.value,
        confidence_score=record.confidence_score,
        study_date=record.study_date,
        last_verified=record.last_verified,
    )


def _require_resolved(identity: ChemicalIdentity) -> int:
    if not identity.is_resolved:
        raise IdentityUnresolved(identity.common_name)
    return identity.id


class SqlExactCache:
    """
    Tier 1: previously normalized records read straight from the database.

    Side effects live in their own table; oxidation products are the name list
    stored on the chemical identity row. A store replaces whatever the identity
    already had for that kind, so storing the same records twice is a no-op.
    """

    def __init__(self, chemical_repository, session_factory=async_session):
        self.chemical_repository = chemical_repository
        self.session_factory = session_factory

    async def lookup(self, identity: ChemicalIdentity, kind: DataKind) -> Optional[Records]:
        if not identity.is_resolved:
            return None

        if kind == DataKind.OXIDATION_PRODUCTS:
            stored = await self.chemical_repository.get(identity.id)
            if stored and stored.oxidation_products:
                return list(stored.oxidation_products)
            return None

        async with self.session_factory() as session:
            query = select(SideEffectRow).where(SideEffectRow.chemical_id == identity.id).order_by(SideEffectRow.id)
            result = await session.execute(query)
            rows = result.scalars().all()

        if not rows:
            return None
        return [_row_to_record(row) for row in rows]

    async def store(self, identity: ChemicalIdentity, kind: DataKind, records: Records) -> None:
        chemical_id = _require_resolved(identity)

        if kind == DataKind.OXIDATION_PRODUCTS:
            await self.chemical_repository.update_oxidation_products(identity, list(records))
            logger.info(f"Stored {len(records)} oxidation products for {identity.common_name}")
            return

        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(delete(SideEffectRow).where(SideEffectRow.chemical_id == chemical_id))
                session.add_all([_record_to_row(record, chemical_id) for record in records])
        logger.info(f"Stored {len(records)} side effects for {identity.common_name}")


class InMemoryExactCache:
    """
    Dictionary-backed exact cache with the same contract as SqlExactCache.

    Oxidation products still go through the identity store, so they land on
    the chemical identity exactly as they do with the SQL cache.
    """

    def __init__(self, chemical_repository):
        self.chemical_repository = chemical_repository
        self._side_effects: Dict[int, List[SideEffectRecord]] = {}

    async def lookup(self, identity: ChemicalIdentity, kind: DataKind) -> Optional[Records]:
        if not identity.is_resolved:
            return None

        if kind == DataKind.OXIDATION_PRODUCTS:
            stored = await self.chemical_repository.get(identity.id)
            if stored and stored.oxidation_products:
                return list(stored.oxidation_products)
            return None

        records = self._side_effects.get(identity.id)
        if not records:
            return None
        return [record.model_copy(deep=True) for record in records]

    async def store(self, identity: ChemicalIdentity, kind: DataKind, records: Records) -> None:
        chemical_id = _require_resolved(identity)

        if kind == DataKind.OXIDATION_PRODUCTS:
            await self.chemical_repository.update_oxidation_products(identity, list(records))
            return

        self._side_effects[chemical_id] = [
            record.model_copy(update={"chemical_id": chemical_id}, deep=True) for record in records
        ]
