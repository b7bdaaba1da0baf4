# src/lcplatform/services/training_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ..contracts.products import Partition, SampleSet

logger = logging.getLogger(__name__)


@dataclass
class TrainingService:
    """
    Partición entrenamiento/prueba (puro dominio):
    - Un valor uniforme en [0,1) por punto, sorteo independiente y reproducible
    - Entrenamiento si valor < split_ratio, prueba en otro caso
    - Sin garantía de balance por clase
    """
    split_ratio: float = 0.7
    seed: int = 42

    def __post_init__(self):
        if not 0.0 < self.split_ratio < 1.0:
            raise ValueError(f"split_ratio debe estar en (0,1); llegó {self.split_ratio}")

    def random_column(self, n: int) -> np.ndarray:
        rng = np.random.default_rng(self.seed)
        return rng.random(n)

    def split(self, samples: SampleSet) -> Partition:
        r = self.random_column(len(samples))
        is_train = r < self.split_ratio
        part = Partition(
            train=samples.subset(is_train),
            test=samples.subset(~is_train),
            random_values=r,
            split_ratio=self.split_ratio,
        )
        logger.info("Partición: %d entrenamiento / %d prueba", len(part.train), len(part.test))
        return part
