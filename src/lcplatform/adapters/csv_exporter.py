## `src/lcplatform/adapters/csv_exporter.py`

from __future__ import annotations

import csv
import os
from typing import Any, Iterable, Mapping

from ..ports.exporters import ReportExporterPort


class CSVExporter(ReportExporterPort):
    """Exporter de tablas de métricas: escribe un CSV desde `context`.

    Convención:
      - `context["headers"]` -> columnas (opcional; si falta, se toman de la primera fila)
      - `context["rows"]`    -> iterable de dicts o secuencias
    `template_id` solo identifica el reporte (accuracy, mcnemar) en mensajes de error.
    """
    def render(self, template_id: str, context: Mapping[str, Any], out_uri: str) -> str:
        rows = list(context.get("rows", []))  # type: Iterable[Any]
        headers = context.get("headers")
        os.makedirs(os.path.dirname(out_uri) or ".", exist_ok=True)
        if headers is None and rows:
            first = rows[0]
            headers = list(first.keys()) if isinstance(first, Mapping) else [f"col{i+1}" for i in range(len(first))]
        with open(out_uri, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            if headers:
                writer.writerow(headers)
            for r in rows:
                if isinstance(r, Mapping):
                    writer.writerow([r.get(h, "") for h in headers])
                else:
                    if headers and len(r) != len(headers):
                        raise ValueError(f"{template_id}: fila con {len(r)} columnas, se esperan {len(headers)}")
                    writer.writerow(list(r))
        return out_uri
