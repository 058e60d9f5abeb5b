import folium

from app.schemas.dashboard import Coordinates, ProjectOut
from app.services.project_map import build_project_map, markers, render_project_map


def _popup_text(marker):
    popup = next(c for c in marker._children.values() if isinstance(c, folium.Popup))
    html = next(iter(popup.html._children.values()))
    return html.data


def _projects(n):
    return [
        ProjectOut(id=f"p{i}", name=f"Site {i}", location=Coordinates(lat=27.7 + i / 100, lng=85.3 + i / 100))
        for i in range(n)
    ]


def test_one_marker_per_project():
    for n in (0, 1, 5):
        assert len(markers(build_project_map(_projects(n)))) == n


def test_marker_popup_is_project_name():
    m = build_project_map(_projects(3))
    assert sorted(_popup_text(marker) for marker in markers(m)) == ["Site 0", "Site 1", "Site 2"]
    assert [marker.location for marker in markers(m)][0] == [27.7, 85.3]


def test_invalid_coordinates_are_skipped():
    projects = _projects(2) + [
        ProjectOut(id="nowhere", name="No location"),
        ProjectOut(id="bad", name="Off the globe", location=Coordinates(lat=123.0, lng=85.0)),
        ProjectOut(id="nan", name="Not a number", location=Coordinates(lat=float("nan"), lng=85.0)),
    ]
    assert len(markers(build_project_map(projects))) == 2


def test_map_uses_configured_center_and_tiles():
    m = build_project_map([])
    assert m.location == [27.7172, 85.324]
    html = render_project_map(_projects(1))
    assert "tile.openstreetmap.org" in html
    assert "Site 0" in html
