# src/lcplatform/adapters/vector_boundary_exporter.py
from __future__ import annotations

import logging
import os

import geopandas as gpd
from shapely.geometry import box

from ..contracts.geo import Bounds, CRSRef
from ..ports.exporters import BoundaryExporterPort

logger = logging.getLogger(__name__)

# extensión -> driver OGR
DRIVERS = {
    ".shp": "ESRI Shapefile",
    ".gpkg": "GPKG",
    ".geojson": "GeoJSON",
}


def boundary_frame(name: str, bounds: Bounds, crs: CRSRef) -> gpd.GeoDataFrame:
    """Un único rectángulo {"name": <área>} en el CRS indicado."""
    geom = box(bounds.minx, bounds.miny, bounds.maxx, bounds.maxy)
    return gpd.GeoDataFrame({"name": [name]}, geometry=[geom], crs=crs.to_string())


class GeoPandasBoundaryExporter(BoundaryExporterPort):
    """
    Límite del área como capa vectorial; el driver sale de la extensión
    (.shp, .gpkg o .geojson). GeoJSON se escribe siempre en WGS84 (RFC 7946).
    """

    def export_boundary(self, name: str, bounds: Bounds, crs: CRSRef, out_uri: str) -> str:
        ext = os.path.splitext(out_uri)[1].lower()
        if ext not in DRIVERS:
            raise ValueError(f"Formato vectorial no soportado: {ext!r} (usa {sorted(DRIVERS)})")
        os.makedirs(os.path.dirname(out_uri) or ".", exist_ok=True)
        gdf = boundary_frame(name, bounds, crs)
        if DRIVERS[ext] == "GeoJSON" and not crs.is_geographic:
            gdf = gdf.to_crs(epsg=4326)
        gdf.to_file(out_uri, driver=DRIVERS[ext])
        logger.info("Límite %s -> %s", name, out_uri)
        return out_uri
