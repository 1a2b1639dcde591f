import pytest


@pytest.fixture
def mock_cid_response():
    return {
        "IdentifierList": {
            "CID": [22311]
        }
    }


@pytest.fixture
def mock_synonyms_response():
    return {
        "InformationList": {
            "Information": [{
                "CID": 22311,
                "Synonym": [
                    "limonene",
                    "dipentene",
                    "138-86-3",  # CAS number
                    "Cinene",
                    "MFCD00062992"
                ]
            }]
        }
    }


@pytest.fixture
def property_responses():
    """One PropertyTable response per property request, in request order."""
    return [
        {"PropertyTable": {"Properties": [{"CID": 22311, "IUPACName": "1-methyl-4-prop-1-en-2-ylcyclohexene"}]}},
        {"PropertyTable": {"Properties": [{"CID": 22311, "MolecularFormula": "C10H16"}]}},
        {"PropertyTable": {"Properties": [{"CID": 22311, "MolecularWeight": "136.23"}]}},
        {"PropertyTable": {"Properties": [{"CID": 22311, "CanonicalSMILES": "CC1=CCC(CC1)C(=C)C"}]}},
        {"PropertyTable": {"Properties": [{"CID": 22311, "InChI": "InChI=1S/C10H16/c1-8(2)10-6-4-9(3)5-7-10/h4,10H,1,5-7H2,2-3H3"}]}},
        {"PropertyTable": {"Properties": [{"CID": 22311, "InChIKey": "XMGQYMWWDOXHJM-UHFFFAOYSA-N"}]}},
    ]
