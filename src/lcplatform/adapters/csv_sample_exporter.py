# src/lcplatform/adapters/csv_sample_exporter.py
from __future__ import annotations

import os

import geopandas as gpd
import pandas as pd
import shapely

from ..contracts.geo import CRSRef
from ..contracts.products import SampleSet
from ..ports.exporters import SampleExporterPort


class CsvSampleExporter(SampleExporterPort):
    """
    Puntos de entrenamiento a CSV: columnas `Map` (clase) y `.geo` (punto GeoJSON).
    `.geo` va siempre en lon/lat WGS84; los puntos se reproyectan desde el CRS del stack.
    """

    def __init__(self, include_features: bool = False) -> None:
        self.include_features = include_features

    def export_samples(self, samples: SampleSet, crs: CRSRef, out_uri: str) -> str:
        os.makedirs(os.path.dirname(out_uri) or ".", exist_ok=True)
        pts = gpd.GeoSeries(gpd.points_from_xy(samples.xy[:, 0], samples.xy[:, 1]), crs=crs.to_string())
        if not crs.is_geographic:
            pts = pts.to_crs(epsg=4326)
        geo = shapely.to_geojson(pts.values)
        df = pd.DataFrame({"Map": samples.labels.astype(int), ".geo": list(geo)})
        if self.include_features:
            feats = pd.DataFrame(samples.features, columns=list(samples.feature_names))
            df = pd.concat([df, feats], axis=1)
        df.to_csv(out_uri, index=False, encoding="utf-8")
        return out_uri
