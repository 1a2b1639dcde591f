from sqlalchemy import Column, Integer, String, Float, Text, DateTime, Date, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from ..core.database import Base


class ChemicalRow(Base):
    __tablename__ = "chemical_identifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(Integer, unique=True, nullable=True)
    common_name = Column(String(255), nullable=False)
    # lowercased common_name, keeps one identity per name regardless of case
    common_name_key = Column(String(255), unique=True, nullable=False, index=True)
    iupac_name = Column(Text)
    cas_number = Column(String(45), index=True)
    molecular_formula = Column(String(255))
    molecular_weight = Column(Float)
    structure = Column(Text)
    inchi = Column(Text)
    inchi_key = Column(String(45))
    synonyms = Column(JSON, default=list)
    oxidation_products = Column(JSON, default=list)
    chemical_family = Column(String(255))
    is_oxidation_product = Column(Boolean, default=False)
    created_at = Column(DateTime)
    last_updated = Column(DateTime)

    side_effects = relationship(
        "SideEffectRow", back_populates="chemical", cascade="all, delete-orphan"
    )


class SideEffectRow(Base):
    __tablename__ = "side_effects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chemical_id = Column(Integer, ForeignKey("chemical_identifications.id"), index=True, nullable=False)
    effect_type = Column(String(255), nullable=False)
    description = Column(Text)
    severity = Column(String(45), nullable=False)
    prevalence_rate = Column(Float)
    population = Column(Text)
    exposure_route = Column(Text)
    onset = Column(String(255))
    affected_body_areas = Column(JSON, default=list)
    study_evidence = Column(Text)
    sources = Column(JSON, default=list)
    verification_status = Column(String(45))
    confidence_score = Column(Integer)
    study_date = Column(Date)
    last_verified = Column(DateTime)

    chemical = relationship("ChemicalRow", back_populates="side_effects")
