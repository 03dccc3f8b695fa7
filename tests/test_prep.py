"""Tests for the prep pipeline."""

import copy

import pytest

from sceneprep import ScenePrep, StatusMap, Validator, is_scene, prep

MESH_VERTICES = [[-1, 0, 0], [0, 1, 2], [1, 0, 0], [0, -1, 2]]
MESH_FACES = [[0, 3, 1], [1, 3, 2]]

CAMERA_LIGHT_BOX = [
    {"farClip": 1000, "focalLength": 43.4558441227157, "id": "cam", "nearClip": 1,
     "primitive": "camera", "type": "perspective"},
    {"entity": "cam", "id": "camInst", "label": "Camera001",
     "matrix": [-0.52, 0, -0.85, -34.58, -0.85, 0, 0.52, 29.44, 0, 1, 0, 3.73, 0, 0, 0, 1],
     "primitive": "instance"},
    {"color": [0.345, 0.564, 0.882], "elements": ["camInst", "boxInst", "spotInst"],
     "id": "layer0", "label": "0", "primitive": "layer", "visible": True},
    {"axis": [0, 0, 1], "dimensions": [18.5, 13.5, 7.6], "id": "box", "origin": [0, 0, 0],
     "primitive": "block", "reference": [1, 0, 0]},
    {"entity": "box", "id": "boxInst", "label": "Box001",
     "matrix": [1, 0, 0, -9.9, 0, 1, 0, 3.9, 0, 0, 1, 3.8, 0, 0, 0, 1],
     "primitive": "instance"},
    {"color": [1, 1, 1], "coneAngle": 43, "id": "spot", "intensity": 1,
     "primitive": "light", "type": "spot"},
    {"entity": "spot", "id": "spotInst", "label": "Spot001",
     "matrix": [-0.96, 0, -0.26, -21.0, -0.26, 0, 0.96, 54.2, 0, 1, 0, 0, 0, 0, 0, 1],
     "primitive": "instance"},
]

FIXTURES = {
    "revit": (
        {"primitive": "revitElement", "fluxId": "Id-1",
         "familyInfo": {"category": "Walls", "family": "WallFamily-1"},
         "geometryParameters": {
             "level": "Level-1", "structural": True,
             "geometry": [{"faces": [[0, 1, 2]],
                           "vertices": [[185.9, -48.9, 0], [185.9, -48.9, 37.4], [185.9, -76.0, 37.4]],
                           "primitive": "mesh", "units": {}}]},
         "instanceParameters": {}, "typeParameters": {}, "customParameters": {}},
        [{"faces": [[0, 1, 2]],
          "vertices": [[185.9, -48.9, 0], [185.9, -48.9, 37.4], [185.9, -76.0, 37.4]],
          "primitive": "mesh", "units": {}, "id": "Id-1",
          "attributes": {"primitive": "revitElement", "fluxId": "Id-1",
                         "familyInfo": {"category": "Walls", "family": "WallFamily-1"},
                         "instanceParameters": {}, "typeParameters": {}, "customParameters": {}}}],
        "",
    ),
    "nesting": (
        [[[{"origin": [0, 0, 0], "primitive": "sphere", "radius": 10}]],
         [{"origin": [0, 0, 0], "dimensions": [1, 2, 3], "primitive": "block"}]],
        [{"origin": [0, 0, 0], "primitive": "sphere", "radius": 10},
         {"origin": [0, 0, 0], "dimensions": [1, 2, 3], "primitive": "block"}],
        "",
    ),
    "containers": (
        {"primitive": "polycurve", "curves": [
            {"controlPoints": [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], "degree": 3,
             "knots": [0, 0, 0, 1, 2, 3, 3, 3], "primitive": "curve"},
            {"start": [1, 0, 0], "middle": [0, 1, 0], "end": [-1, 0, 0], "primitive": "arc"},
            {"start": [0, 0, 0], "end": [1, 0, 0], "primitive": "line"}]},
        [{"controlPoints": [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], "degree": 3,
          "knots": [0, 0, 0, 1, 2, 3, 3, 3], "primitive": "curve"},
         {"start": [1, 0, 0], "middle": [0, 1, 0], "end": [-1, 0, 0], "primitive": "arc"},
         {"start": [0, 0, 0], "end": [1, 0, 0], "primitive": "line"}],
        "",
    ),
    "colors": (
        [{"attributes": {"materialProperties": {"color": "red"}},
          "vertices": MESH_VERTICES, "faces": MESH_FACES, "primitive": "mesh"},
         {"attributes": {"materialProperties": {"color": "blue"}},
          "vertices": MESH_VERTICES, "faces": MESH_FACES, "primitive": "mesh"}],
        [{"attributes": {"materialProperties": {"color": [1, 0, 0]}},
          "vertices": MESH_VERTICES, "faces": MESH_FACES, "primitive": "mesh"},
         {"attributes": {"materialProperties": {"color": [0, 0, 1]}},
          "vertices": MESH_VERTICES, "faces": MESH_FACES, "primitive": "mesh"}],
        "",
    ),
    "legacyMaterial": (
        {"attributes": {"materialProperties": {"opacity": 1, "roughness": 0.4}},
         "vertices": MESH_VERTICES, "faces": MESH_FACES, "primitive": "mesh"},
        [{"attributes": {"materialProperties": {"transparency": 0, "glossiness": 0.6}},
          "vertices": MESH_VERTICES, "faces": MESH_FACES, "primitive": "mesh"}],
        "",
    ),
    "empty": (
        [None, {"origin": [0, 0, 0], "primitive": "sphere", "radius": 10, "label": None}, None],
        [{"origin": [0, 0, 0], "primitive": "sphere", "radius": 10}],
        "",
    ),
    "triangulate": (
        [{"vertices": [[-1, 1, 2], [1, 1, 2], [1, -1, 2], [-1, -1, 2]],
          "faces": [[0, 3, 2, 1]], "uv": [[0, 0], [0, 1], [1, 1], [1, 0]],
          "primitive": "mesh", "id": "3DF1D7DC"}],
        [{"vertices": [[-1, 1, 2], [1, 1, 2], [1, -1, 2], [-1, -1, 2]],
          "faces": [[0, 3, 2], [0, 2, 1]], "uv": [[0, 0], [0, 1], [1, 1], [1, 0]],
          "primitive": "mesh", "id": "3DF1D7DC"}],
        "",
    ),
    "schemaPartial": (
        [{"origin": [0, 0, 0], "primitive": "sphere", "radius": 10},
         {"xorigin": [0, 0, 0], "primitive": "sphere", "radius": 10}],
        [{"origin": [0, 0, 0], "primitive": "sphere", "radius": 10}],
        "origin",
    ),
    "geometryListIds": (
        [{"entities": [
            {"id": "ball", "origin": [0, 0, 10], "primitive": "sphere", "radius": 10},
            {"id": "ball", "origin": [0, 0, -10], "primitive": "sphere", "radius": 10}],
          "id": "dataKey0", "primitive": "geometryList"},
         {"entity": "dataKey0", "id": "stuff",
          "matrix": [1, 0, 0, -20, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1], "primitive": "instance"},
         {"color": [0.8, 0.5, 0.3], "elements": ["stuff"], "id": "myLayer", "primitive": "layer"}],
        [{"entities": [
            {"origin": [0, 0, 10], "primitive": "sphere", "radius": 10},
            {"origin": [0, 0, -10], "primitive": "sphere", "radius": 10}],
          "id": "dataKey0", "primitive": "geometryList"},
         {"entity": "dataKey0", "id": "stuff",
          "matrix": [1, 0, 0, -20, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1], "primitive": "instance"},
         {"color": [0.8, 0.5, 0.3], "elements": ["stuff"], "id": "myLayer", "primitive": "layer"}],
        "",
    ),
    "invalidSchema": (
        {"colorx": [[0, 1, 0], [1, 1, 1]], "facesx": [[0, 1, 2, 3]], "id": "3DF1D7DC",
         "primitive": "mesh", "verticexs": [[-1, 1, 2], [1, 1, 2], [1, -1, 2], [-1, -1, 2]]},
        [],
        "required property",
    ),
    "cameraLightBox": (
        [None] + CAMERA_LIGHT_BOX[:3] + [None] + CAMERA_LIGHT_BOX[3:],
        CAMERA_LIGHT_BOX,
        "",
    ),
}


@pytest.mark.parametrize("name", sorted(FIXTURES))
def test_prep_fixture(name):
    start, end, errors = FIXTURES[name]
    status = StatusMap()
    result = prep(copy.deepcopy(start), status)
    assert result == end
    summary = status.invalid_key_summary()
    if errors:
        assert errors in summary
    else:
        assert summary == ""
        if is_scene(start):
            assert Validator().validate_json(result).message == ""


def test_geometry_list_units():
    scene = [
        {"entities": [{"id": "circle1", "origin": [-1, -2, 0], "primitive": "circle",
                       "radius": 1, "units": {"origin": "cm", "radius": "cm"}}],
         "id": "list", "primitive": "geometryList"},
        {"entity": "list", "id": "inst", "matrix": [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1],
         "primitive": "instance"},
        {"color": [1, 1, 1], "elements": ["inst"], "id": "layer", "label": "0",
         "primitive": "layer", "visible": True},
    ]
    status = StatusMap()
    result = prep(scene, status)
    circle = result[0]["entities"][0]
    assert "id" not in circle
    assert circle["origin"] == pytest.approx([-0.01, -0.02, 0])
    assert circle["radius"] == pytest.approx(0.01)
    assert circle["units"] == {"origin": "meters", "radius": "meters"}
    assert result[2] == {"elements": ["inst"], "id": "layer", "label": "0",
                         "primitive": "layer", "visible": True}
    assert status.invalid_key_summary() == ""


def test_input_not_mutated():
    start = FIXTURES["legacyMaterial"][0]
    before = copy.deepcopy(start)
    prep(start)
    assert start == before


@pytest.mark.parametrize("name", ["cameraLightBox", "geometryListIds", "triangulate", "colors"])
def test_idempotent(name):
    once = prep(FIXTURES[name][0])
    assert prep(once) == once


class TestSceneExplosion:
    """Containers and revit elements inside full scenes become groups."""

    def test_revit_in_scene(self):
        scene = [
            {"primitive": "layer", "id": "L", "elements": ["I"]},
            {"primitive": "instance", "id": "I", "entity": "R"},
            {"primitive": "revitElement", "id": "R", "fluxId": "F",
             "geometryParameters": {"geometry": [
                 {"primitive": "point", "point": [0, 0, 0]},
                 {"primitive": "point", "point": [1, 0, 0]}]}},
        ]
        result = prep(scene)
        by_id = {e["id"]: e for e in result}
        assert by_id["I"] == {"primitive": "group", "id": "I", "children": ["R"]}
        assert by_id["R"] == {"primitive": "group", "id": "R",
                              "children": ["R-instance-0", "R-instance-1"]}
        assert by_id["R-child-1"]["point"] == [1, 0, 0]
        assert by_id["R-child-1"]["attributes"]["fluxId"] == "F"
        assert by_id["R-instance-0"]["entity"] == "R-child-0"
        assert Validator().validate_json(result).valid

    def test_polycurve_in_scene(self):
        scene = [
            {"primitive": "layer", "id": "L", "elements": ["I"]},
            {"primitive": "instance", "id": "I", "entity": "P", "matrix": list(range(16))},
            {"primitive": "polycurve", "id": "P", "curves": [
                {"primitive": "line", "start": [0, 0, 0], "end": [1, 0, 0]}]},
        ]
        result = prep(scene)
        by_id = {e["id"]: e for e in result}
        assert by_id["I"]["primitive"] == "group"
        assert by_id["I"]["children"] == ["P"]
        assert by_id["I"]["matrix"] == list(range(16))
        assert by_id["P"]["children"] == ["P-instance-0"]
        assert by_id["P-child-0"]["primitive"] == "line"
        assert Validator().validate_json(result).valid

    def test_container_splice_hands_down_attributes(self):
        poly = {"primitive": "polysurface", "attributes": {"tag": "outer", "name": "p"},
                "surfaces": [{"primitive": "surface", "uDegree": 1, "vDegree": 1,
                              "uKnots": [0, 0, 1, 1], "vKnots": [0, 0, 1, 1],
                              "controlPoints": [[[0, 0, 0], [1, 0, 0]], [[0, 1, 0], [1, 1, 0]]],
                              "attributes": {"name": "s"}}]}
        result = prep(poly)
        assert len(result) == 1
        assert result[0]["attributes"] == {"tag": "outer", "name": "s"}

    def test_container_units_convert_children(self):
        poly = {"primitive": "polycurve", "units": {"curves/0/end": "km"},
                "curves": [{"primitive": "line", "start": [0, 0, 0], "end": [1, 0, 0]}]}
        result = prep(poly)
        assert result[0]["end"] == [1000, 0, 0]

    def nested_polycurve_scene(self):
        return [
            {"primitive": "layer", "id": "L", "elements": ["I"]},
            {"primitive": "instance", "id": "I", "entity": "P"},
            {"primitive": "polycurve", "id": "P", "curves": [
                {"primitive": "polycurve", "curves": [
                    {"primitive": "line", "start": [0, 0, 0], "end": [1, 0, 0]}]}]},
        ]

    def test_nested_polycurve_in_scene(self):
        result = prep(self.nested_polycurve_scene())
        by_id = {e["id"]: e for e in result}
        assert by_id["P-child-0"] == {"primitive": "group", "id": "P-child-0",
                                      "children": ["P-child-0-instance-0"]}
        assert by_id["P-instance-0"] == {"primitive": "group", "id": "P-instance-0",
                                         "children": ["P-child-0"]}
        assert by_id["P-child-0-child-0"]["primitive"] == "line"
        assert not any(e["primitive"] == "polycurve" for e in result)
        assert Validator().validate_json(result).valid

    def test_nested_polycurve_scene_idempotent(self):
        once = prep(self.nested_polycurve_scene())
        assert prep(once) == once

    def test_nested_containers_outside_scene(self):
        data = {"primitive": "polycurve", "attributes": {"tag": "outer"}, "curves": [
            {"primitive": "polycurve", "curves": [
                {"primitive": "line", "start": [0, 0, 0], "end": [1, 0, 0]}]}]}
        result = prep(data)
        assert [e["primitive"] for e in result] == ["line"]
        assert result[0]["attributes"] == {"tag": "outer"}


class TestSoftFailures:
    """Problems are recorded, never raised."""

    def test_invalid_material_replaced(self):
        data = {"primitive": "sphere", "origin": [0, 0, 0], "radius": 1,
                "attributes": {"materialProperties": {"transparency": 5}}}
        status = StatusMap()
        result = prep(data, status)
        assert result[0]["attributes"]["materialProperties"] == {}
        assert status.invalid_key("materialProperties")

    def test_unknown_color_removed_with_warning(self):
        data = {"primitive": "sphere", "origin": [0, 0, 0], "radius": 1,
                "attributes": {"materialProperties": {"color": "not-a-colour"}}}
        status = StatusMap()
        result = prep(data, status)
        assert "color" not in result[0]["attributes"]["materialProperties"]
        assert status.warnings()
        assert status.invalid_key_summary() == ""

    def test_element_without_primitive_dropped(self):
        status = StatusMap()
        assert prep([{"origin": [0, 0, 0]}, "junk"], status) == []
        assert status.invalid_key("element")

    def test_unknown_primitive(self):
        status = StatusMap()
        assert prep({"primitive": "teapot", "id": "t"}, status) == []
        assert status.errors["teapot:t"] == ["Unknown primitive type."]

    def test_units_converted(self):
        data = {"primitive": "sphere", "origin": [1, 0, 0], "radius": 1,
                "units": {"origin": "km"}}
        result = prep(data)
        assert result[0]["origin"] == [1000, 0, 0]
        assert result[0]["units"] == {"origin": "meters"}

    def test_unknown_unit_is_warning(self):
        data = {"primitive": "sphere", "id": "s", "origin": [1, 0, 0], "radius": 1,
                "units": {"radius": "parsnips"}}
        status = StatusMap()
        result = prep(data, status)
        assert result[0]["radius"] == 1
        assert status.warnings("sphere:s") == ["Unknown units 'parsnips' for radius"]

    def test_non_object_material_replaced(self):
        data = {"primitive": "sphere", "origin": [0, 0, 0], "radius": 1,
                "attributes": {"materialProperties": 5}}
        status = StatusMap()
        result = prep(data, status)
        assert result[0]["attributes"]["materialProperties"] == {}
        assert status.invalid_key("materialProperties")

    def test_resolver_lookup_error_removes_color(self):
        def resolver(name):
            raise KeyError(name)

        status = StatusMap()
        data = {"primitive": "light", "id": "l", "type": "point", "color": "anything"}
        result = ScenePrep(color_resolver=resolver).prep(data, status)
        assert "color" not in result[0]
        assert status.warnings("light:l") == ["Unknown color 'anything'"]


def test_injected_color_resolver():
    preparer = ScenePrep(color_resolver=lambda name: [0.5, 0.5, 0.5])
    data = {"primitive": "light", "id": "l", "type": "point", "color": "anything"}
    assert preparer.prep(data)[0]["color"] == [0.5, 0.5, 0.5]
