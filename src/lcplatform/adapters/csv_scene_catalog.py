# =============================
# FILE: src/lcplatform/adapters/csv_scene_catalog.py
# =============================
from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from lcplatform.ports.catalog import SceneCatalogPort, SceneItem

logger = logging.getLogger(__name__)

# Column maps tolerantes a distintas nomenclaturas
SCENE_COLMAP: Dict[str, Tuple[str, ...]] = {
    "scene_id": ("scene_id", "SCENE_ID", "LANDSAT_SCENE_ID", "id", "system:index"),
    "acq_date": ("date", "DATE", "acq_date", "acquisition_date", "DATE_ACQUIRED", "datetime"),
    "path": ("path", "PATH", "filepath", "product_path", "asset_path", "file"),
    "sensor": ("sensor", "SENSOR", "SPACECRAFT_ID", "platform"),
    "cloud_pct": ("cloud_pct", "CLOUD_COVER", "clouds", "cloud_coverage"),
}


def _first_present(df: pd.DataFrame, candidates: Tuple[str, ...]) -> Optional[str]:
    for c in candidates:
        if c in df.columns:
            return c
    return None


def _standardize(df: pd.DataFrame, spec: Dict[str, Tuple[str, ...]]) -> pd.DataFrame:
    out = pd.DataFrame(index=df.index)
    known = set()
    for std, cands in spec.items():
        col = _first_present(df, cands)
        out[std] = df[col] if col is not None else None
        if col is not None:
            known.add(col)
    extra = [c for c in df.columns if c not in known]
    out["_extras"] = df[extra].to_dict(orient="records") if extra else [{} for _ in range(len(df))]
    return out


def _parse_date(val: Any) -> Optional[date]:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    s = str(val).strip()
    if not s:
        return None
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%Y%m%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    ts = pd.to_datetime(s, errors="coerce")
    return None if pd.isna(ts) else ts.date()


class CsvSceneCatalog(SceneCatalogPort):
    """Adapter de catálogo que **lee un CSV** de escenas y expone un **SceneCatalogPort**.

    Mínimo: `scene_id`, `date`, `path` (rutas relativas se resuelven contra `project_root`).
    Filas sin fecha o sin ruta se descartan con aviso.
    """

    def __init__(self, csv_path: Path, project_root: Optional[Path] = None, encoding: str = "utf-8") -> None:
        self.csv_path = Path(csv_path)
        if not self.csv_path.exists():
            raise FileNotFoundError(f"No se encontró el catálogo de escenas: {self.csv_path}")
        self.root = (project_root or self.csv_path.parent).resolve()
        self.encoding = encoding
        self._scenes: List[SceneItem] = []
        self._load()

    def _abspath(self, p: Any) -> Optional[Path]:
        if p is None or (isinstance(p, float) and pd.isna(p)):
            return None
        path = Path(str(p))
        return path.resolve() if path.is_absolute() else (self.root / path).resolve()

    def _load(self) -> None:
        df = _standardize(pd.read_csv(self.csv_path, encoding=self.encoding), SCENE_COLMAP)
        scenes: List[SceneItem] = []
        for i, r in df.iterrows():
            acq = _parse_date(r.get("acq_date"))
            path = self._abspath(r.get("path"))
            if acq is None or path is None:
                logger.warning("Fila %s del catálogo sin fecha o ruta; se omite", i)
                continue
            sid = r.get("scene_id")
            cloud = r.get("cloud_pct")
            sensor = r.get("sensor")
            scenes.append(SceneItem(
                scene_id=str(sid) if sid is not None and not pd.isna(sid) else path.stem,
                acq_date=acq,
                path=path,
                sensor=None if sensor is None or pd.isna(sensor) else str(sensor),
                cloud_pct=None if cloud is None or pd.isna(cloud) else float(cloud),
                extras=r.get("_extras", {}) or {},
            ))
        self._scenes = sorted(scenes, key=lambda s: (s.acq_date, s.scene_id))
        logger.debug("Catálogo %s: %d escenas", self.csv_path, len(self._scenes))

    def iter_scenes(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Iterable[SceneItem]:
        for s in self._scenes:
            if date_from and s.acq_date < date_from:
                continue
            if date_to and s.acq_date > date_to:
                continue
            yield s
