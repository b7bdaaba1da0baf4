# src/lcplatform/cli.py
"""
CLI de clasificación de cobertura (contracts-first).

Comandos principales:
  - run: pipeline completo (features, etiquetas, muestreo, 5 modelos, McNemar, exportes).
  - labels: solo features + consenso; escribe el raster de etiquetas final.
  - boundary: escribe el límite del área de estudio (GeoJSON).

La configuración sale de <root>/00-Config/settings.yaml (si existe) y de
variables de entorno LC_*.

Ejemplos rápidos:
  python -m lcplatform.cli --root ./proyecto run
  python -m lcplatform.cli --root ./proyecto labels
  python -m lcplatform.cli --root ./proyecto boundary
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .composition.di import build_boundary_pipeline, build_pipeline, build_settings
from .config import Settings, get_settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def _settings(args: argparse.Namespace) -> Settings:
    if args.root:
        return build_settings(Path(args.root))
    return get_settings()


# ----------------------
# Comandos
# ----------------------

def cmd_run(args: argparse.Namespace) -> int:
    s = _settings(args)
    if args.workers:
        s = s.model_copy(update={"max_workers": int(args.workers)})
    pipe = build_pipeline(s)
    result = pipe.run(export=not args.no_export, classify_image=not args.no_maps)

    print(result.report, end="")
    for key, path in result.outputs.items():
        print(f"{key}: {path}")
    # Falla de modelos no aborta la corrida, pero se refleja en el código de salida
    return 2 if result.errors else 0


def cmd_labels(args: argparse.Namespace) -> int:
    s = _settings(args)
    pipe = build_pipeline(s)
    _, labels, out = pipe.run_labels()
    counts = ", ".join(f"{o.name.lower()}={n}" for o, n in labels.origin_counts.items())
    print(f"Etiquetas: {counts}")
    if out is not None:
        print(str(out))
    return 0


def cmd_boundary(args: argparse.Namespace) -> int:
    s = _settings(args)
    out = build_boundary_pipeline(s).export_boundary()
    print(str(out))
    return 0


# ----------------------
# Parser
# ----------------------

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lcplatform", description="Clasificación de cobertura (contracts-first)")
    p.add_argument("--root", help="project_root (lee 00-Config/settings.yaml)")
    p.add_argument("-v", "--verbose", action="store_true", help="logging DEBUG")
    sub = p.add_subparsers(dest="cmd", required=True)

    pr = sub.add_parser("run", help="pipeline completo")
    pr.add_argument("--workers", type=int, help="modelos en paralelo (sobre-escribe max_workers)")
    pr.add_argument("--no-export", action="store_true", help="no escribe productos, solo imprime el reporte")
    pr.add_argument("--no-maps", action="store_true", help="omite la clasificación de la imagen completa")
    pr.set_defaults(func=cmd_run)

    pl = sub.add_parser("labels", help="features + consenso; escribe etiquetas finales")
    pl.set_defaults(func=cmd_labels)

    pb = sub.add_parser("boundary", help="exporta el límite del área de estudio")
    pb.set_defaults(func=cmd_boundary)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)
    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        return 130
    except Exception as ex:
        logging.getLogger(__name__).debug("Detalle del error", exc_info=True)
        print(f"[ERROR] {ex}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
