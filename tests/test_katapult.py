import pytest

from polerecon.config import MatchConfig
from polerecon.katapult import (
    birthmark_components, collect_birthmarks, coords_from_katapult, katapult_existing_pct,
    katapult_pole_nodes, katapult_pole_num, katapult_scid, katapult_spec, load_katapult,
    node_type, normalize_katapult_record, proposed_drop_poles,
)
from polerecon.models import SpecComponents


class TestLoadKatapult:
    def test_only_pole_nodes_are_kept(self, katapult_doc):
        assert [key for key, _ in katapult_pole_nodes(katapult_doc)] == ["n1", "n2", "n3"]

    def test_imported_pole(self, katapult_doc):
        pole = load_katapult(katapult_doc)[0]
        assert pole.source == "katapult"
        assert pole.original_index == 0
        assert pole.scid == "7"
        assert pole.pole_num == "28462"
        assert pole.coords == (30.0, -95.00001)
        assert pole.spec == "45-3 SOUTHERN PINE"
        assert pole.existing_pct == 41.23
        assert pole.final_pct == 55.5
        assert pole.comm_drop is True

    def test_birthmark_on_node(self, katapult_doc):
        pole = load_katapult(katapult_doc)[1]
        assert pole.scid == "12"
        assert pole.pole_num == "99"
        assert pole.coords == (30.1, -95.1)
        assert pole.spec == "40-4 DOUGLAS FIR"
        assert pole.comm_drop is False

    def test_referenced_birthmark(self, katapult_doc):
        pole = load_katapult(katapult_doc)[2]
        assert pole.scid is None                      # "A12"
        assert pole.pole_num is None
        assert pole.coords is None
        assert pole.spec == "35-5 CEDAR"
        assert pole.comm_drop is False

    def test_without_connections_drops_are_unknown(self, katapult_doc):
        del katapult_doc["connections"]
        assert {p.comm_drop for p in load_katapult(katapult_doc)} == {None}

    @pytest.mark.parametrize("doc", [None, [], {}, {"nodes": []}])
    def test_bad_document(self, doc):
        with pytest.raises(ValueError):
            load_katapult(doc)

    def test_empty_nodes(self):
        assert load_katapult({"nodes": {}}) == []


class TestNodeType:
    @pytest.mark.parametrize("node, expected", [
        ({"node_type": "Pole"}, "pole"),
        ({"attributes": {"node_type": {"-Imported": "Power Transformer"}}}, "power transformer"),
        ({"attributes": {"node_type": {"button_added": "joint"}}}, "joint"),
        ({"attributes": {}}, None),
        ({}, None),
    ])
    def test_node_type(self, node, expected):
        assert node_type(node) == expected


class TestBirthmarks:
    def test_collect_keys(self, katapult_doc):
        birthmarks = collect_birthmarks(katapult_doc)
        assert set(birthmarks) == {"n2", "bm-9"}
        assert birthmarks["bm-9"] == SpecComponents(35, "5", "Cedar")
        assert birthmarks["n2"] == SpecComponents(40, "4", "Douglas Fir")

    def test_structure_rid_key(self):
        doc = {"nodes": {"k": {"StructureRID": "S-1",
                               "attributes": {"birthmark_brand": {"pole_height": "45"}}}}}
        assert list(collect_birthmarks(doc)) == ["S-1"]

    def test_flat_bundle(self):
        parts = birthmark_components({"pole_height": 13.716, "pole_class": "CL 2", "pole_species": "Pine"})
        assert parts == SpecComponents(45, "2", "Pine")

    def test_bundle_without_brand(self):
        assert birthmark_components({"-Nx": "not a bundle"}) is None
        assert birthmark_components(None) is None


class TestDropPoles:
    def test_unmeasured_section_marks_the_pole(self, katapult_doc):
        assert proposed_drop_poles(katapult_doc) == {"n1"}

    def test_pole_on_either_end(self, katapult_doc):
        katapult_doc["connections"]["c1"] = {"node_id_1": "svc", "node_id_2": "n1", "sections": {"sec-1": {}}}
        assert proposed_drop_poles(katapult_doc) == {"n1"}

    def test_carrier_compare_is_case_insensitive(self, katapult_doc):
        assert proposed_drop_poles(katapult_doc, carrier="CHARTER") == {"n1"}

    def test_other_carrier(self, katapult_doc):
        assert proposed_drop_poles(katapult_doc, carrier="AT&T") == set()

    def test_missing_connection_data(self, katapult_doc):
        del katapult_doc["connections"]
        assert proposed_drop_poles(katapult_doc) is None
        assert proposed_drop_poles(None) is None

    def test_record_without_key_has_unknown_drop(self, katapult_doc):
        node = katapult_doc["nodes"]["n1"]
        assert normalize_katapult_record(0, None, node, {}, {"n1"}).comm_drop is None
        assert normalize_katapult_record(0, "n1", node, {}, {"n1"}).comm_drop is True
        assert normalize_katapult_record(0, "n1", node, {}, None).comm_drop is None


class TestNodeFields:
    def test_legacy_coordinates(self):
        assert coords_from_katapult({"Latitude": "30.2", "Longitude": "-95.2"}) == (30.2, -95.2)

    def test_attribute_coordinates(self):
        node = {"attributes": {"latitude": {"-Imported": 30.3}, "longitude": {"-Imported": -95.3}}}
        assert coords_from_katapult(node) == (30.3, -95.3)

    def test_non_point_geometry_is_ignored(self):
        assert coords_from_katapult({"geometry": {"type": "LineString", "coordinates": [1, 2]}}) is None

    def test_scid_falls_back_to_structure_rid(self):
        assert katapult_scid({"StructureRID": "0042"}) == "0042"
        assert katapult_scid({"attributes": {"scid": {"-Imported": "5"}}, "StructureRID": "6"}) == "5"

    def test_pole_number_skips_sources_without_digits(self):
        node = {"attributes": {"PL_number": {"-Imported": "N/A"}, "DLOC_number": {"-Imported": "12"}}}
        assert katapult_pole_num(node) == "12"

    def test_pole_number_from_electric_pole_tag(self):
        node = {"attributes": {"electric_pole_tag": {"-Imported": {"assessment": "A-301"}}}}
        assert katapult_pole_num(node) == "301"

    def test_pole_number_top_level(self):
        assert katapult_pole_num({"PoleNumber": "PL-007"}) == "7"

    def test_pole_spec_wins_over_birthmark(self):
        node = {"attributes": {
            "pole_spec": {"-Imported": "50-2"},
            "birthmark_brand": {"-Nx": {"pole_height": "40", "pole_class": "4"}},
        }}
        assert katapult_spec(node, {}) == "50-2"

    def test_legacy_pole_specs_field(self):
        assert katapult_spec({"Pole Specs": "45' Class 3 Cedar"}, {}) == "45-3 CEDAR"

    def test_attribute_triple_last(self):
        node = {"attributes": {"pole_height": {"-Imported": "40"}, "pole_class": {"-Imported": "Class 4"}}}
        assert katapult_spec(node, {}) == "40-4"

    def test_no_spec(self):
        assert katapult_spec({"attributes": {}}, {}) is None

    def test_existing_pct_legacy_field(self):
        assert katapult_existing_pct({"Condition (%)": "33.5%"}) == 33.5
        assert katapult_existing_pct({}) is None

    def test_metre_range_from_config(self):
        node = {"attributes": {"pole_height": {"-Imported": 20}, "pole_class": {"-Imported": "5"}}}
        assert katapult_spec(node, {}) == "66-5"
        config = MatchConfig(metre_height_range=(0, 0))
        assert normalize_katapult_record(0, "x", node, {}, None, config).spec == "20-5"
