# src/lcplatform/services/pipeline_service.py
"""
Pipeline de clasificación de cobertura, por etapas explícitas:
  FEATURES → LABELS → SAMPLING → PARTITION → MODELS → SIGNIFICANCE → EXPORT

Cada etapa llama a un servicio puro; todo acceso a datos va vía *ports*
inyectados. Las rutas de salida salen de Settings.out_path().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from ..config import Settings, get_settings
from ..contracts.assessment import McNemarResult, TopographyStats
from ..contracts.core import RunError, RunMeta, Stage
from ..contracts.labels import ConsensusResult
from ..contracts.products import FeatureStack, Partition, SampleSet, TerrainSet
from ..ports.classifier import ClassifierBackendPort
from ..ports.exporters import (
    BoundaryExporterPort, QuicklookExporterPort, ReportExporterPort, SampleExporterPort,
)
from ..ports.imagery import ImageryProviderPort
from ..ports.raster_write import RasterWriterPort
from ..ports.reference_labels import ReferenceLabelPort
from ..ports.sampler import SamplerPort
from ..ports.terrain import TerrainProviderPort
from .consensus_service import ConsensusService
from .evaluation_service import EvaluationService, ModelRun
from .feature_service import FeatureService
from .report_service import ReportService
from .significance_service import SignificanceService
from .topography_service import TopographyService
from .training_service import TrainingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    meta: RunMeta
    stack: FeatureStack
    labels: ConsensusResult
    samples: SampleSet
    partition: Partition
    runs: Mapping[str, ModelRun]
    significance: Mapping[str, McNemarResult]
    topography: TopographyStats
    errors: Tuple[RunError, ...] = ()
    outputs: Mapping[str, Path] = field(default_factory=dict)
    report: str = ""

    @property
    def outcomes(self):
        return {name: run.outcome for name, run in self.runs.items()}


@dataclass
class LandCoverPipeline:
    settings: Settings = field(default_factory=get_settings)
    imagery: Optional[ImageryProviderPort] = None
    reference_labels: Optional[ReferenceLabelPort] = None
    terrain: Optional[TerrainProviderPort] = None
    sampler: Optional[SamplerPort] = None
    backend: Optional[ClassifierBackendPort] = None
    writer: Optional[RasterWriterPort] = None
    sample_exporter: Optional[SampleExporterPort] = None
    boundary_exporter: Optional[BoundaryExporterPort] = None
    report_exporter: Optional[ReportExporterPort] = None
    quicklook_exporter: Optional[QuicklookExporterPort] = None

    @staticmethod
    def _require(port, what: str):
        if port is None:
            raise RuntimeError(f"{what} no configurado")
        return port

    # ----------------------
    # Etapas
    # ----------------------
    def build_features(self) -> Tuple[FeatureStack, TerrainSet]:
        s = self.settings
        logger.info("[%s] imágenes %s..%s", Stage.FEATURES.value, s.imagery_start, s.imagery_end)
        coll = self._require(self.imagery, "ImageryProviderPort").collection(
            s.study_area.bounds, s.crs_out_ref(), s.imagery_start, s.imagery_end,
            qa_mask_bits=s.qa_mask_bits,
        )
        terrain = self._require(self.terrain, "TerrainProviderPort").terrain(coll.profile)
        svc = FeatureService(glcm_radius=s.glcm_radius, glcm_levels=s.glcm_levels,
                             tpi_radius_m=s.tpi_radius_m)
        return svc.build(coll, terrain), terrain

    def build_labels(self, stack: FeatureStack) -> ConsensusResult:
        s = self.settings
        logger.info("[%s] consenso %s / %s", Stage.LABELS.value,
                    s.remap_primary.source, s.remap_secondary.source)
        sources = self._require(self.reference_labels, "ReferenceLabelPort").sources(stack.profile)
        return ConsensusService(thresholds=s.thresholds).run(
            sources, s.remap_primary, s.remap_secondary, stack)

    def sample(self, stack: FeatureStack, labels: ConsensusResult) -> SampleSet:
        s = self.settings
        samples = self._require(self.sampler, "SamplerPort").stratified_sample(
            stack, labels.labels, s.class_counts, seed=s.seed)
        logger.info("[%s] %d puntos; por clase %s", Stage.SAMPLING.value,
                    len(samples), samples.class_histogram())
        return samples

    def split(self, samples: SampleSet) -> Partition:
        s = self.settings
        return TrainingService(split_ratio=s.split_ratio, seed=s.seed).split(samples)

    def train_models(self, partition: Partition, stack: Optional[FeatureStack] = None) -> Dict[str, ModelRun]:
        s = self.settings
        logger.info("[%s] %d modelos (%d workers)", Stage.MODELS.value, len(s.models), s.max_workers)
        svc = EvaluationService(
            backend=self._require(self.backend, "ClassifierBackendPort"),
            seed=s.seed, max_workers=s.max_workers, stage_timeout_s=s.stage_timeout_s,
        )
        return svc.run_all(s.models, partition, stack)

    def compare_models(
        self, runs: Mapping[str, ModelRun], partition: Partition
    ) -> Tuple[Dict[str, McNemarResult], List[RunError]]:
        s = self.settings
        logger.info("[%s] referencia %s", Stage.SIGNIFICANCE.value, s.reference_model)
        svc = SignificanceService(threshold=s.significance_threshold, max_workers=s.max_workers)
        outcomes = {n: r.outcome for n, r in runs.items()}
        return svc.compare_all(s.reference_model, outcomes, partition.test.labels)

    # ----------------------
    # Exportación (solo puertos configurados)
    # ----------------------
    def write_labels(self, labels: ConsensusResult) -> Optional[Path]:
        if self.writer is None:
            return None
        out = self.settings.out_path("labels")
        out.parent.mkdir(parents=True, exist_ok=True)
        return Path(self.writer.write(str(out), labels.labels))

    def export_boundary(self) -> Optional[Path]:
        if self.boundary_exporter is None:
            return None
        s = self.settings
        out = s.out_path("boundary", area=s.study_area.name)
        out.parent.mkdir(parents=True, exist_ok=True)
        return Path(self.boundary_exporter.export_boundary(
            s.study_area.name, s.study_area.bounds, s.crs_out_ref(), str(out)))

    def export(
        self,
        labels: ConsensusResult,
        samples: SampleSet,
        runs: Mapping[str, ModelRun],
        significance: Mapping[str, McNemarResult],
        report: str,
    ) -> Dict[str, Path]:
        s = self.settings
        area = s.study_area.name
        outputs: Dict[str, Path] = {}
        logger.info("[%s] escribiendo productos en %s", Stage.EXPORT.value, s.project_root)

        p = self.write_labels(labels)
        if p is not None:
            outputs["labels"] = p
        p = self.export_boundary()
        if p is not None:
            outputs["boundary"] = p

        if self.sample_exporter is not None:
            out = s.out_path("samples", area=area)
            out.parent.mkdir(parents=True, exist_ok=True)
            outputs["samples"] = Path(self.sample_exporter.export_samples(
                samples, labels.labels.profile.crs, str(out)))

        for name, run in runs.items():
            if run.classified is None:
                continue
            if self.writer is not None:
                out = s.out_path("classified", model=name)
                out.parent.mkdir(parents=True, exist_ok=True)
                outputs[f"classified:{name}"] = Path(self.writer.write(str(out), run.classified))
            if self.quicklook_exporter is not None and s.write_quicklooks:
                out = s.out_path("quicklook", model=name)
                out.parent.mkdir(parents=True, exist_ok=True)
                outputs[f"quicklook:{name}"] = Path(
                    self.quicklook_exporter.export_classmap(run.classified, s.palette, str(out)))

        if self.report_exporter is not None:
            rep = ReportService()
            out = s.out_path("metrics")
            outputs["metrics"] = Path(self.report_exporter.render(
                "accuracy", {"rows": rep.accuracy_rows({n: r.outcome for n, r in runs.items()})}, str(out)))
            out = s.out_path("significance")
            outputs["significance"] = Path(self.report_exporter.render(
                "mcnemar", {"rows": rep.significance_rows(significance),
                            "headers": ["reference", "alternative", "n10", "n01",
                                        "chi2", "p_value", "significant"]}, str(out)))

        out = s.out_path("report")
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(report, encoding="utf-8")
        outputs["report"] = out
        return outputs

    # ----------------------
    # Orquestación
    # ----------------------
    def run_labels(self) -> Tuple[FeatureStack, ConsensusResult, Optional[Path]]:
        """Solo features + consenso; escribe el raster de etiquetas si hay writer."""
        stack, _ = self.build_features()
        labels = self.build_labels(stack)
        return stack, labels, self.write_labels(labels)

    def run(self, *, export: bool = True, classify_image: bool = True) -> PipelineResult:
        s = self.settings
        meta = RunMeta(study_area=s.study_area.name)
        errors: List[RunError] = []

        stack, terrain = self.build_features()
        topo = TopographyService().elevation_range(terrain.elevation)
        labels = self.build_labels(stack)
        samples = self.sample(stack, labels)
        partition = self.split(samples)

        runs = self.train_models(partition, stack if classify_image else None)
        errors.extend(r.outcome.error for r in runs.values() if r.outcome.error is not None)
        significance, skipped = self.compare_models(runs, partition)
        errors.extend(skipped)

        report = ReportService().render_text(
            s.study_area.name,
            {n: r.outcome for n, r in runs.items()},
            significance,
            topography=topo,
            class_histogram=samples.class_histogram(),
            origin_counts=labels.origin_counts,
            n_train=len(partition.train),
            n_test=len(partition.test),
            errors=errors,
        )
        outputs = self.export(labels, samples, runs, significance, report) if export else {}

        meta = meta.end_now()
        logger.info("Pipeline terminado en %.1fs (%d errores)", meta.duration_s or 0.0, len(errors))
        return PipelineResult(
            meta=meta, stack=stack, labels=labels, samples=samples, partition=partition,
            runs=runs, significance=significance, topography=topo, errors=tuple(errors),
            outputs=outputs, report=report,
        )
