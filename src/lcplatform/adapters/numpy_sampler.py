# src/lcplatform/adapters/numpy_sampler.py
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ..contracts.core import ClassCounts, LandCoverClass
from ..contracts.geo import GeoRaster, pixel_to_world, validate_grid_compat
from ..contracts.products import FeatureStack, SampleSet
from ..ports.sampler import SamplerPort

logger = logging.getLogger(__name__)


@dataclass
class NumpyStratifiedSampler(SamplerPort):
    """Muestreo estratificado sin reemplazo con numpy (una extracción independiente por clase)."""

    def stratified_sample(
        self, stack: FeatureStack, labels: GeoRaster, counts: ClassCounts, *, seed: int
    ) -> SampleSet:
        validate_grid_compat(stack.profile, labels.profile)
        codes = np.ma.getdata(labels.data)
        valid = labels.valid_mask()
        if codes.ndim == 3:
            codes, valid = codes[0], valid[0]
        eligible = (valid & stack.complete_mask()).ravel()
        flat_codes = codes.ravel()

        rng = np.random.default_rng(seed)
        picks = []
        for cls in LandCoverClass:
            pool = np.flatnonzero(eligible & (flat_codes == int(cls)))
            target = counts.for_class(cls)
            n = min(target, pool.size)
            if n < target:
                logger.warning("Clase %s: %d de %d puntos disponibles", cls.label, n, target)
            if n:
                picks.append(np.sort(rng.choice(pool, size=n, replace=False)))
        idx = np.concatenate(picks) if picks else np.zeros((0,), dtype=np.int64)

        h, w = stack.shape
        rows, cols = np.divmod(idx, w)
        x, y = pixel_to_world(cols + 0.5, rows + 0.5, stack.profile.transform)
        return SampleSet(
            features=stack.matrix()[idx].astype("float32"),
            labels=flat_codes[idx].astype(np.int16),
            xy=np.column_stack([x, y]).astype("float64").reshape(-1, 2),
            feature_names=stack.names,
        )
