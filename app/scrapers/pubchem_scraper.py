from typing import Any, Dict, List, Optional
from urllib.parse import quote
import logging
import re

from .base_scraper import BaseScraper
from ..core.config import PUBCHEM_BASE_URL, MAX_SYNONYMS
from ..core.exceptions import RegistryUnavailable
from ..models.allergen import RegistryRecord

logger = logging.getLogger(__name__)

CAS_PATTERN = re.compile(r'^\d{2,7}-\d{2}-\d$')


class PubChemScraper(BaseScraper):
    """Chemical registry resolver backed by the PubChem PUG REST API."""

    BASE_URL = PUBCHEM_BASE_URL

    # (PubChem property requested, response keys to read, RegistryRecord field)
    PROPERTY_ENDPOINTS = [
        ("IUPACName", ("IUPACName",), "iupac_name"),
        ("MolecularFormula", ("MolecularFormula",), "molecular_formula"),
        ("MolecularWeight", ("MolecularWeight",), "molecular_weight"),
        ("SMILES", ("SMILES", "CanonicalSMILES", "ConnectivitySMILES"), "structure"),
        ("InChI", ("InChI",), "inchi"),
        ("InChIKey", ("InChIKey",), "inchi_key"),
    ]

    def __init__(self, max_synonyms: int = MAX_SYNONYMS):
        # PubChem allows five requests per second
        super().__init__(rate_limit=0.2)
        self.max_synonyms = max_synonyms

    async def search_by_name(self, name: str) -> Optional[RegistryRecord]:
        """
        Resolve a compound name to its PubChem record.

        Returns None when PubChem does not know the name. Transport failures
        other than "not found" raise RegistryUnavailable.
        """
        cid_url = f"{self.BASE_URL}/compound/name/{quote(name.strip(), safe='')}/cids/JSON"

        try:
            response = await self._make_request(cid_url)
        except RegistryUnavailable as e:
            if e.status_code == 404:
                logger.info(f"PubChem has no compound named {name}")
                return None
            raise

        cids = response.json().get("IdentifierList", {}).get("CID")
        if not cids:
            logger.info(f"PubChem returned no CID for {name}")
            return None

        cid = cids[0]
        properties = await self._get_properties_separately(cid)
        synonyms = await self._get_synonyms(cid)

        return self._parse_pubchem_data(cid, properties, synonyms)

    async def _get_properties_separately(self, cid: int) -> Dict[str, Any]:
        """Get properties with separate API calls to avoid 400 errors."""
        properties = {}

        for pubchem_prop, response_keys, our_prop in self.PROPERTY_ENDPOINTS:
            try:
                prop_url = f"{self.BASE_URL}/compound/cid/{cid}/property/{pubchem_prop}/JSON"
                response = await self._make_request(prop_url)
                data = response.json()

                rows = data.get("PropertyTable", {}).get("Properties")
                if rows:
                    value = next((rows[0][key] for key in response_keys if rows[0].get(key)), None)
                    if value:
                        properties[our_prop] = value

            except Exception as e:
                logger.warning(f"Failed to get {pubchem_prop} for CID {cid}: {e}")
                continue

        return properties

    async def _get_synonyms(self, cid: int) -> List[str]:
        """Get the first synonyms for a CID."""
        try:
            synonyms_url = f"{self.BASE_URL}/compound/cid/{cid}/synonyms/JSON"
            response = await self._make_request(synonyms_url)
            information = response.json().get("InformationList", {}).get("Information", [])
        except Exception as e:
            logger.warning(f"Failed to get synonyms for CID {cid}: {e}")
            return []

        if not information:
            return []
        return [str(s) for s in information[0].get("Synonym", [])]

    def _parse_pubchem_data(self, cid: int, properties: Dict[str, Any], synonyms: List[str]) -> RegistryRecord:
        """Build a RegistryRecord; the CAS number is the first CAS-shaped synonym."""
        cas_number = next((s for s in synonyms if CAS_PATTERN.match(s)), None)

        weight = properties.get("molecular_weight")
        try:
            weight = float(weight) if weight is not None else None
        except (TypeError, ValueError):
            weight = None

        return RegistryRecord(
            external_id=int(cid),
            iupac_name=properties.get("iupac_name"),
            cas_number=cas_number,
            molecular_formula=properties.get("molecular_formula"),
            molecular_weight=weight,
            structure=properties.get("structure"),
            inchi=properties.get("inchi"),
            inchi_key=properties.get("inchi_key"),
            synonyms=synonyms[:self.max_synonyms],
        )
