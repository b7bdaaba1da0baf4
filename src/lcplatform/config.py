# src/lcplatform/config.py
from __future__ import annotations

from datetime import date
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .contracts.assessment import ModelFamily, ModelSpec
from .contracts.core import ClassCounts, ClassPalette
from .contracts.features import MEDIAN_SPECTRAL_NAMES
from .contracts.geo import Bounds, CRSRef
from .contracts.labels import DYNAMIC_WORLD, ESA_WORLDCOVER, ConsensusThresholds, RemapTable

# Placeholders permitidos por clave
INPUT_PLACEHOLDERS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "scene_catalog": (),
    "label_primary": (),
    "label_secondary": (),
    "dem": (),
    "upstream_area": (),
    "hand": (),
})
OUTPUT_PLACEHOLDERS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "labels": (),
    "classified": ("model",),
    "quicklook": ("model",),
    "samples": ("area",),
    "boundary": ("area",),
    "metrics": (),
    "significance": (),
    "report": (),
})

DEFAULT_MODELS: Tuple[ModelSpec, ...] = (
    ModelSpec(name="RF", family=ModelFamily.RANDOM_FOREST,
              params={"n_estimators": 100, "max_features": 5}),
    ModelSpec(name="GBM", family=ModelFamily.GRADIENT_BOOSTING,
              params={"n_estimators": 50, "learning_rate": 0.05, "subsample": 0.7}),
    ModelSpec(name="SVM", family=ModelFamily.SVM,
              params={"kernel": "rbf", "gamma": 0.5, "C": 10.0}),
    ModelSpec(name="CART", family=ModelFamily.CART),
    ModelSpec(name="MinDist", family=ModelFamily.MINIMUM_DISTANCE,
              params={"metric": "mahalanobis"}, bands=MEDIAN_SPECTRAL_NAMES),
)


class StudyArea(BaseModel):
    model_config = ConfigDict(frozen=True)
    name: str = "Suam_Study_Area"
    bounds: Bounds = Bounds(34.68, 1.10, 34.86, 1.28)   # lon/lat (W, S, E, N)

    @model_validator(mode="after")
    def _ordered(self) -> "StudyArea":
        b = self.bounds
        if not (b.minx < b.maxx and b.miny < b.maxy):
            raise ValueError(f"bounds inválidos: {b}")
        return self


class Settings(BaseSettings):
    """
    Config unificada del proyecto. No toca disco.
    Debe ser construida y provista por composition/di.py (CLI/adapters).
    """
    model_config = SettingsConfigDict(
        frozen=True,
        env_file=".env",
        env_prefix="LC_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    # --- básicos ---
    project_root: Path = Path(".")
    crs_out: str = "EPSG:4326"
    study_area: StudyArea = StudyArea()

    # --- imágenes ---
    imagery_start: date = date(2025, 1, 1)
    imagery_end: date = date(2025, 12, 31)
    reflectance_scale: float = 0.0000275    # Landsat C2 L2
    reflectance_offset: float = -0.2
    qa_mask_bits: Tuple[int, ...] = (2, 3, 4)  # cirrus, nube, sombra (QA_PIXEL)

    # --- etiquetas ---
    remap_primary: RemapTable = ESA_WORLDCOVER
    remap_secondary: RemapTable = DYNAMIC_WORLD
    label_nodata: int = Field(255, ge=0)     # solo si el GeoTIFF de etiquetas no declara nodata
    thresholds: ConsensusThresholds = ConsensusThresholds()
    palette: ClassPalette = ClassPalette()

    # --- muestreo / partición ---
    class_counts: ClassCounts = ClassCounts()
    split_ratio: float = Field(0.7, gt=0.0, lt=1.0)
    seed: int = 42
    sample_scale_m: float = 30.0

    # --- textura / terreno ---
    glcm_radius: int = Field(3, ge=1)
    glcm_levels: int = Field(32, ge=2, le=256)
    tpi_radius_m: float = Field(150.0, gt=0)

    # --- modelos ---
    models: Tuple[ModelSpec, ...] = DEFAULT_MODELS
    reference_model: str = "RF"
    significance_threshold: float = 3.84
    max_workers: int = Field(5, ge=1)
    stage_timeout_s: Optional[float] = None
    write_quicklooks: bool = True

    input_patterns: Dict[str, str] = Field(default_factory=lambda: {
        "scene_catalog": "00-Config/scenes.csv",
        "label_primary": "01-Raw/labels/esa_worldcover_2020.tif",
        "label_secondary": "01-Raw/labels/dynamic_world_mode.tif",
        "dem": "01-Raw/terrain/srtm.tif",
        "upstream_area": "01-Raw/terrain/merit_upa.tif",
        "hand": "01-Raw/terrain/merit_hnd.tif",
    })
    output_patterns: Dict[str, str] = Field(default_factory=lambda: {
        "labels": "02-Work/LABELS/final_labels.tif",
        "classified": "03-Products/CLASSIFIED/{model}.tif",
        "quicklook": "03-Products/CLASSIFIED/{model}.png",
        "samples": "03-Products/EXPORT/{area}_training_points.csv",
        "boundary": "03-Products/EXPORT/{area}_bbox.shp",
        "metrics": "03-Products/REPORT/accuracy.csv",
        "significance": "03-Products/REPORT/mcnemar.csv",
        "report": "03-Products/REPORT/report.txt",
    })

    # ----------------------------
    # Normalizadores / validadores
    # ----------------------------
    @field_validator("project_root", mode="before")
    @classmethod
    def _abs_root(cls, v: Path | str) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("crs_out", mode="before")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        v2 = str(v).strip()
        if not v2:
            raise ValueError("crs_out no puede ser vacío")
        return v2

    def crs_out_ref(self) -> CRSRef:
        return CRSRef.parse(self.crs_out)

    @field_validator("input_patterns")
    @classmethod
    def _check_in(cls, d: Dict[str, str]) -> Dict[str, str]:
        return _check_patterns("input_patterns", d, INPUT_PLACEHOLDERS)

    @field_validator("output_patterns")
    @classmethod
    def _check_out(cls, d: Dict[str, str]) -> Dict[str, str]:
        return _check_patterns("output_patterns", d, OUTPUT_PLACEHOLDERS)

    @model_validator(mode="after")
    def _models_coherent(self) -> "Settings":
        names = [m.name for m in self.models]
        if len(set(names)) != len(names):
            raise ValueError(f"Nombres de modelo repetidos: {names}")
        if self.reference_model not in names:
            raise ValueError(f"reference_model={self.reference_model!r} no está en models {names}")
        if self.imagery_end < self.imagery_start:
            raise ValueError("imagery_end anterior a imagery_start")
        for table in (self.remap_primary, self.remap_secondary):
            if self.label_nodata in table.mapping:
                raise ValueError(f"label_nodata={self.label_nodata} es un código válido de {table.source}")
        return self

    # ----------------------------
    # Helpers puros (sin side-effects)
    # ----------------------------
    def in_path(self, key: str, **fmt) -> Path:
        pat = self.input_patterns[key]
        return (self.project_root / pat.format(**fmt)).resolve()

    def out_path(self, key: str, **fmt) -> Path:
        """Resuelve patrón de salida (no crea carpetas)."""
        pat = self.output_patterns[key]
        return (self.project_root / pat.format(**fmt)).resolve()

    @property
    def benchmark_models(self) -> Tuple[str, ...]:
        return tuple(m.name for m in self.models if m.name != self.reference_model)


def _check_patterns(field: str, d: Dict[str, str], allowed_map: Mapping[str, Tuple[str, ...]]) -> Dict[str, str]:
    for k, pat in d.items():
        allowed = set(allowed_map.get(k, ()))
        used = {name for _, name in _iter_placeholders(pat)}
        unknown = used - allowed
        if unknown:
            raise ValueError(f"{field}[{k}] usa placeholders no permitidos: {sorted(unknown)}")
    return d


# Utilidad interna: detectar {placeholders}
def _iter_placeholders(fmt: str):
    start = 0
    while True:
        i = fmt.find("{", start)
        if i == -1:
            break
        j = fmt.find("}", i + 1)
        if j == -1:
            break
        name = fmt[i + 1 : j].strip()
        if name:
            yield (i, name)
        start = j + 1


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Instancia cacheada. Úsala SOLO desde composition/di.py o CLI.
    Prohibido usarla en services/ (dominio). Para tests, recuerda limpiar:
        get_settings.cache_clear()
    """
    return Settings()
