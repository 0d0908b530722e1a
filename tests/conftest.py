import copy

import pytest

from polerecon.models import NormalizedPole


SPIDA_DOC = {
    "clientData": {
        "poles": [
            {
                "id": "pole-def-1",
                "height": {"unit": "METRE", "value": 13.716},
                "classOfPole": "3",
                "species": "Southern Pine",
                "aliases": [{"id": "POLE-A"}],
            },
        ],
    },
    "leads": [
        {
            "locations": [
                {
                    "label": "1-PL28462",
                    "geographicCoordinate": {"type": "Point", "coordinates": [-95.0, 30.0]},
                    "designs": [
                        {
                            "layerType": "Measured",
                            "structure": {"pole": {"clientItemAlias": "POLE-A"}},
                            "analysis": [{"results": [{"component": "Pole", "actual": 41.234}]}],
                        },
                        {
                            "layerType": "Recommended",
                            "structure": {
                                "pole": {"clientItemAlias": "POLE-A"},
                                "attachments": [
                                    {
                                        "owner": {"industry": "COMMUNICATION", "id": "Charter"},
                                        "clientItem": {"type": "ServiceDrop"},
                                    },
                                ],
                            },
                            "analysis": [{"results": [
                                {"component": "Insulator", "actual": 5.0},
                                {"component": "Pole", "actual": 55.5},
                            ]}],
                        },
                    ],
                },
                {
                    "id": "12",
                    "designs": [
                        {
                            "layerType": "Recommended",
                            "structure": {
                                "pole": {"clientItem": {
                                    "height": {"unit": "FOOT", "value": 40},
                                    "classOfPole": "4",
                                    "species": "Douglas Fir",
                                }},
                                "attachments": [],
                            },
                        },
                    ],
                },
                {"label": "no designs"},
            ],
        },
    ],
}


KATAPULT_DOC = {
    "nodes": {
        "n1": {
            "latitude": 30.0,
            "longitude": -95.00001,
            "attributes": {
                "node_type": {"-Imported": "pole"},
                "scid": {"-Imported": "7"},
                "pole_tag": {"-Imported": {"tagtext": "PL28462"}},
                "pole_spec": {"-Imported": "45-3 Southern Pine"},
                "existing_capacity_%": {"-Imported": "41.23%"},
                "final_passing_capacity_%": {"-Imported": "55.5"},
            },
        },
        "n2": {
            "geometry": {"type": "Point", "coordinates": [-95.1, 30.1]},
            "attributes": {
                "node_type": {"button_added": "Power"},
                "scid": {"auto_button": "12"},
                "DLOC_number": {"-Imported": "PL-0099"},
                "birthmark_brand": {
                    "-Nabc": {"pole_height": "40", "pole_class": "Class 4", "pole_species*": "Douglas Fir*"},
                },
            },
        },
        "n3": {
            "attributes": {
                "node_type": {"-Imported": "joint"},
                "scid": {"-Imported": "A12"},
                "birthmark_reference_id": {"-Imported": "bm-9"},
            },
        },
        "svc": {
            "attributes": {
                "node_type": {"-Imported": "service location"},
                "node_sub_type": {"-Imported": "Charter"},
                "measured_attachments": {"sec-1": False, "sec-2": True},
            },
        },
        "ref": {
            "attributes": {
                "node_type": {"-Imported": "reference"},
                "birthmark_reference_id": {"-Imported": "bm-9"},
                "birthmark_brand": {"-Nx": {"height": "35", "class": "5", "species": "Cedar"}},
            },
        },
    },
    "connections": {
        "c1": {"node_id_1": "n1", "node_id_2": "svc", "sections": {"sec-1": {}}},
        "c2": {"node_id_1": "n2", "node_id_2": "svc", "sections": {"sec-2": {}}},
    },
}


@pytest.fixture
def spida_doc():
    return copy.deepcopy(SPIDA_DOC)


@pytest.fixture
def katapult_doc():
    return copy.deepcopy(KATAPULT_DOC)


def make_pole(index=0, source="spida", **fields):
    return NormalizedPole(original_index=index, source=source, **fields)


@pytest.fixture
def sp():
    return lambda index=0, **fields: make_pole(index, "spida", **fields)


@pytest.fixture
def kat():
    return lambda index=0, **fields: make_pole(index, "katapult", **fields)
