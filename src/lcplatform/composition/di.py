from __future__ import annotations
from pathlib import Path
from typing import Optional
import yaml

from ..config import Settings
from ..contracts.geo import meters_to_crs_units
from ..adapters.csv_exporter import CSVExporter
from ..adapters.csv_sample_exporter import CsvSampleExporter
from ..adapters.csv_scene_catalog import CsvSceneCatalog
from ..adapters.vector_boundary_exporter import GeoPandasBoundaryExporter
from ..adapters.geotiff_imagery_provider import GeoTiffImageryProvider
from ..adapters.geotiff_reference_labels import GeoTiffReferenceLabels
from ..adapters.geotiff_terrain_provider import GeoTiffTerrainProvider
from ..adapters.numpy_sampler import NumpyStratifiedSampler
from ..adapters.png_quicklook_exporter import PngQuicklookExporter
from ..adapters.rasterio_raster_reader import RasterioRasterReader
from ..adapters.rasterio_raster_writer import RasterioRasterWriter
from ..adapters.sklearn_backend import SklearnClassifierBackend
from ..ports.raster_read import RasterReaderPort
from ..services.pipeline_service import LandCoverPipeline

SETTINGS_FILE = Path("00-Config") / "settings.yaml"

def load_settings_from_yaml(path: Path, **overrides) -> Settings:
    """Settings desde un YAML; `overrides` pisa las claves leídas."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    data.update(overrides)
    return Settings(**data)

def build_settings(project_root: Path) -> Settings:
    """Lee 00-Config/settings.yaml si existe; project_root siempre es el indicado."""
    root = Path(project_root)
    cfg = (root / SETTINGS_FILE).resolve()
    if cfg.exists():
        return load_settings_from_yaml(cfg, project_root=root)
    return Settings(project_root=root)

def imagery_pixel_size(s: Settings) -> float:
    b = s.study_area.bounds
    return meters_to_crs_units(s.sample_scale_m, s.crs_out_ref(), lat=(b.miny + b.maxy) / 2.0)

def build_imagery_provider(s: Settings, reader: Optional[RasterReaderPort] = None) -> GeoTiffImageryProvider:
    catalog = CsvSceneCatalog(s.in_path("scene_catalog"), project_root=s.project_root)
    return GeoTiffImageryProvider(
        catalog=catalog,
        pixel_size=imagery_pixel_size(s),
        reader=reader or RasterioRasterReader(),
        scale=s.reflectance_scale,
        offset=s.reflectance_offset,
    )

def build_reference_labels(s: Settings, reader: Optional[RasterReaderPort] = None) -> GeoTiffReferenceLabels:
    return GeoTiffReferenceLabels(
        primary_uri=str(s.in_path("label_primary")),
        secondary_uri=str(s.in_path("label_secondary")),
        nodata=s.label_nodata,
        reader=reader or RasterioRasterReader(),
    )

def build_terrain_provider(s: Settings, reader: Optional[RasterReaderPort] = None) -> GeoTiffTerrainProvider:
    return GeoTiffTerrainProvider(
        dem_uri=str(s.in_path("dem")),
        upstream_area_uri=str(s.in_path("upstream_area")),
        hand_uri=str(s.in_path("hand")),
        reader=reader or RasterioRasterReader(),
    )

def build_pipeline(s: Settings) -> LandCoverPipeline:
    """Cablea todos los adapters locales (GeoTIFF/CSV/scikit-learn) en el pipeline."""
    reader = RasterioRasterReader()
    return LandCoverPipeline(
        settings=s,
        imagery=build_imagery_provider(s, reader),
        reference_labels=build_reference_labels(s, reader),
        terrain=build_terrain_provider(s, reader),
        sampler=NumpyStratifiedSampler(),
        backend=SklearnClassifierBackend(),
        writer=RasterioRasterWriter(),
        sample_exporter=CsvSampleExporter(),
        boundary_exporter=GeoPandasBoundaryExporter(),
        report_exporter=CSVExporter(),
        quicklook_exporter=PngQuicklookExporter(),
    )

def build_boundary_pipeline(s: Settings) -> LandCoverPipeline:
    """Solo exportación del límite; no toca catálogos ni rasters."""
    return LandCoverPipeline(settings=s, boundary_exporter=GeoPandasBoundaryExporter())
