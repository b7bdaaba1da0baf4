# src/lcplatform/adapters/png_quicklook_exporter.py
from __future__ import annotations

import os

import numpy as np
from PIL import Image

from ..contracts.core import ClassPalette
from ..contracts.geo import GeoRaster
from ..ports.exporters import QuicklookExporterPort


class PngQuicklookExporter(QuicklookExporterPort):
    """Mapa de clases a PNG RGBA con la paleta fija; píxeles sin clase -> transparentes."""

    def __init__(self, max_size_px: int = 2048) -> None:
        self.max_size_px = max_size_px

    def export_classmap(self, labels: GeoRaster, palette: ClassPalette, out_uri: str) -> str:
        data = np.ma.getdata(labels.data)
        valid = labels.valid_mask()
        if data.ndim == 3:
            data, valid = data[0], valid[0]
        h, w = data.shape
        rgba = np.zeros((h, w, 4), dtype=np.uint8)
        for cid, (r, g, b) in palette.as_mapping().items():
            sel = valid & (data == cid)
            rgba[sel] = (r, g, b, 255)

        img = Image.fromarray(rgba)
        if max(h, w) > self.max_size_px:
            scale = self.max_size_px / float(max(h, w))
            img = img.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.Resampling.NEAREST)
        os.makedirs(os.path.dirname(out_uri) or ".", exist_ok=True)
        img.save(out_uri)
        return out_uri
