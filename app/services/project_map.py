"""Project locations map built with folium (Leaflet)."""
from __future__ import annotations

from typing import Iterable

import folium

from app.config import settings
from app.core.logger import get_logger
from app.schemas.dashboard import ProjectOut

logger = get_logger(__name__)


def build_project_map(
    projects: Iterable[ProjectOut],
    center: tuple[float, float] | None = None,
    zoom: int | None = None,
) -> folium.Map:
    """One marker per project with a valid coordinate pair; popup text is the project name."""
    m = folium.Map(
        location=list(center or (settings.map_center_lat, settings.map_center_lng)),
        zoom_start=settings.map_zoom if zoom is None else zoom,
        tiles=None,
    )
    folium.TileLayer(
        tiles=settings.map_tile_url,
        attr=settings.map_tile_attribution,
        name="Base map",
    ).add_to(m)

    for project in projects:
        if project.location is None or not project.location.is_valid():
            logger.warning("Skipping map marker for project %s: invalid location", project.id)
            continue
        folium.Marker(
            location=[project.location.lat, project.location.lng],
            popup=folium.Popup(project.name),
            tooltip=project.name,
        ).add_to(m)
    return m


def markers(m: folium.Map) -> list[folium.Marker]:
    return [child for child in m._children.values() if isinstance(child, folium.Marker)]


def render_project_map(projects: Iterable[ProjectOut]) -> str:
    m = build_project_map(projects)
    logger.debug("Rendering project map with %d markers", len(markers(m)))
    return m.get_root().render()
