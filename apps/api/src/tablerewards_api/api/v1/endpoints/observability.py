"""Observability endpoints for loyalty engine counters."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from tablerewards_api.api.dependencies.security import require_internal_api_key
from tablerewards_api.observability.loyalty import get_loyalty_store


router = APIRouter(
    prefix="/observability",
    tags=["Observability"],
    dependencies=[Depends(require_internal_api_key)],
)


@router.get("/loyalty", summary="Loyalty engine counters")
async def get_loyalty_snapshot() -> dict[str, object]:
    return get_loyalty_store().snapshot().as_dict()


def _format_metric(name: str, value: int, labels: dict[str, str] | None = None) -> str:
    label_fragment = ""
    if labels:
        rendered = ",".join(f'{key}="{val}"' for key, val in sorted(labels.items()))
        label_fragment = f"{{{rendered}}}"
    return f"{name}{label_fragment} {value}"


@router.get("/prometheus", response_class=PlainTextResponse, summary="Loyalty counters in Prometheus text format")
async def get_prometheus_metrics() -> PlainTextResponse:
    snapshot = get_loyalty_store().snapshot().as_dict()
    lines: list[str] = []
    for group, counters in snapshot.items():
        metric = f"tablerewards_loyalty_{group}_total"
        lines.append(f"# TYPE {metric} counter")
        for counter, value in sorted(counters.items()):
            lines.append(_format_metric(metric, value, {"counter": counter}))
    return PlainTextResponse("\n".join(lines) + "\n")
