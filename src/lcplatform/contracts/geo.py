# src/lcplatform/contracts/geo.py

from __future__ import annotations
import math
from dataclasses import dataclass, replace
from typing import Any, Literal, NamedTuple, Tuple, Optional

import numpy as np
import numpy.typing as npt

GeoTransform = Tuple[float, float, float, float, float, float]
DTypeStr = Literal["uint8","uint16","int16","uint32","int32","float32","float64"]

class Bounds(NamedTuple):
    minx: float; miny: float; maxx: float; maxy: float

# ---------- CRS (puro dominio, sin GDAL) ----------
@dataclass(frozen=True)
class CRSRef:
    wkt: Optional[str] = None
    epsg: Optional[int] = None

    @staticmethod
    def from_epsg(code: int) -> "CRSRef":
        return CRSRef(epsg=int(code))

    @staticmethod
    def from_wkt(wkt: str) -> "CRSRef":
        return CRSRef(wkt=wkt)

    @staticmethod
    def parse(text: str) -> "CRSRef":
        s = text.strip()
        if s.upper().startswith("EPSG:"):
            return CRSRef.from_epsg(int(s.split(":")[1]))
        if not s:
            raise ValueError("CRS vacío")
        return CRSRef.from_wkt(s)

    @property
    def is_geographic(self) -> bool:
        # Solo reconoce el caso habitual (lon/lat WGS84)
        return self.epsg == 4326

    def to_string(self) -> str:
        if self.wkt:
            return self.wkt
        if self.epsg is not None:
            return f"EPSG:{int(self.epsg)}"
        raise ValueError("CRSRef vacío: no hay WKT ni EPSG.")

    @staticmethod
    def _normalize_wkt(wkt: str) -> str:
        s = " ".join(wkt.strip().upper().split())
        s = s.replace(" ,", ",").replace(", ", ",")
        return s.replace("[ ", "[").replace(" ]", "]")

    def equals(self, other: "CRSRef") -> bool:
        """EPSG contra EPSG, o WKT normalizado contra WKT. Mezclas -> False."""
        if self is other:
            return True
        if self.epsg is not None and other.epsg is not None:
            return int(self.epsg) == int(other.epsg)
        if self.wkt and other.wkt:
            return self._normalize_wkt(self.wkt) == self._normalize_wkt(other.wkt)
        return False

# ---------- Perfil y Raster ----------
@dataclass(frozen=True)
class GeoProfile:
    count: int
    dtype: DTypeStr
    width: int
    height: int
    transform: GeoTransform
    crs: CRSRef
    nodata: Optional[float] = None

    @property
    def bounds(self) -> Bounds:
        return geotransform_bounds(self.transform, self.width, self.height)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    def pixel_size(self) -> Tuple[float, float]:
        _, px, _, _, _, py = self.transform
        return (px, py)

    def pixel_size_m(self) -> Tuple[float, float]:
        """Tamaño de píxel en metros (aprox. esférica si el CRS es geográfico)."""
        px, py = (abs(v) for v in self.pixel_size())
        if not self.crs.is_geographic:
            return (px, py)
        b = self.bounds
        lat = math.radians((b.miny + b.maxy) / 2.0)
        return (px * 111_320.0 * math.cos(lat), py * 110_540.0)

    def with_count(self, count: int, dtype: DTypeStr | None = None, nodata: float | None = None) -> "GeoProfile":
        return replace(self, count=int(count), dtype=dtype or self.dtype, nodata=nodata)

@dataclass(frozen=True)
class GeoRaster:
    data: "npt.NDArray[Any]"  # (H, W) o (C, H, W); puede ser np.ma.MaskedArray
    profile: GeoProfile

    def __post_init__(self):
        # Bloquea mutaciones accidentales sobre los datos
        self.data.setflags(write=False)
        if np.ma.isMaskedArray(self.data):
            np.ma.getmaskarray(self.data).setflags(write=False)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.data.shape  # type: ignore[no-any-return]

    @property
    def is_masked(self) -> bool:
        return bool(np.ma.isMaskedArray(self.data))

    def valid_mask(self) -> np.ndarray:
        """True donde el píxel tiene valor (sin máscara, distinto de nodata y finito)."""
        arr = self.data
        raw = np.ma.getdata(arr)
        mask = ~np.ma.getmaskarray(arr)
        if arr.dtype.kind == "f":
            mask &= np.isfinite(raw)
        nd = self.profile.nodata
        if nd is not None and not math.isnan(nd):
            mask &= raw != nd
        return mask

    def valid_as_float(self) -> np.ndarray:
        """Copia float32 con NaN en píxeles enmascarados o nodata."""
        out = np.ma.getdata(self.data).astype("float32")
        out[~self.valid_mask()] = np.nan
        return out

# ---------- GeoTransform helpers ----------
def geotransform_bounds(gt: GeoTransform, width: int, height: int) -> Bounds:
    x0, px, rx, y0, ry, py = gt
    x_w = x0 + width * px + height * rx
    y_w = y0 + width * ry + height * py
    minx, maxx = (x0, x_w) if x0 <= x_w else (x_w, x0)
    miny, maxy = (y_w, y0) if y_w <= y0 else (y0, y_w)
    return Bounds(minx, miny, maxx, maxy)

def bounds_to_geotransform(bounds: Bounds, width: int, height: int) -> GeoTransform:
    minx, miny, maxx, maxy = bounds
    px = (maxx - minx) / float(width)
    py = (miny - maxy) / float(height)  # negativo (origen arriba-izquierda)
    return (minx, px, 0.0, maxy, 0.0, py)

def grid_from_bounds(bounds: Bounds, crs: CRSRef, pixel_size: float, dtype: DTypeStr = "float32") -> GeoProfile:
    """Grilla norte-arriba que cubre `bounds` con píxeles cuadrados de `pixel_size` (unidades del CRS)."""
    if pixel_size <= 0:
        raise ValueError("pixel_size debe ser > 0")
    width = max(1, int(math.ceil((bounds.maxx - bounds.minx) / pixel_size)))
    height = max(1, int(math.ceil((bounds.maxy - bounds.miny) / pixel_size)))
    gt = (bounds.minx, pixel_size, 0.0, bounds.maxy, 0.0, -pixel_size)
    return GeoProfile(count=1, dtype=dtype, width=width, height=height, transform=gt, crs=crs)

def meters_to_crs_units(meters: float, crs: CRSRef, lat: float = 0.0) -> float:
    """Metros -> grados (aprox. esférica) si el CRS es geográfico; si no, igual."""
    if not crs.is_geographic:
        return meters
    return meters / (111_320.0 * math.cos(math.radians(lat)))

def pixel_to_world(col, row, gt: GeoTransform):
    """Acepta escalares o arrays; usa (col+0.5,row+0.5) si quieres el centro."""
    x0, px, rx, y0, ry, py = gt
    x = x0 + col * px + row * rx
    y = y0 + col * ry + row * py
    return x, y

def _gt_close(a: GeoTransform, b: GeoTransform, tol: float = 1e-6) -> bool:
    return all(math.isclose(x, y, rel_tol=0.0, abs_tol=tol) for x, y in zip(a, b))

def validate_grid_compat(a: GeoProfile, b: GeoProfile, *, require_same_crs: bool = True) -> None:
    """Misma grilla (CRS, tamaño, geotransform); dtype y nodata pueden diferir."""
    if require_same_crs and not a.crs.equals(b.crs):
        raise ValueError("CRS no coincide.")
    if a.width != b.width or a.height != b.height:
        raise ValueError(f"Dimensiones no coinciden: {a.shape} vs {b.shape}")
    if not _gt_close(a.transform, b.transform):
        raise ValueError("GeoTransform no coincide (requiere resampling/alineación).")

__all__ = [
    "GeoTransform","Bounds","CRSRef","GeoProfile","GeoRaster","geotransform_bounds",
    "bounds_to_geotransform","pixel_to_world","validate_grid_compat","DTypeStr",
    "grid_from_bounds","meters_to_crs_units",
]
