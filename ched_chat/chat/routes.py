"""Ordered remote model routes, configured outside the code."""

import json
from dataclasses import dataclass

from ched_chat.config import resolve_path, settings


@dataclass(frozen=True)
class ModelRoute:
    model: str
    alias: str | None = None


def parse_routes(raw: str) -> list[ModelRoute]:
    """Parse ``model=alias,model2`` into routes, keeping the given order."""
    routes: list[ModelRoute] = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        model, _, alias = entry.partition("=")
        model = model.strip()
        if not model:
            raise RuntimeError(f"Invalid MODEL_ROUTES entry: '{entry}'")
        routes.append(ModelRoute(model=model, alias=alias.strip() or None))
    return routes


def _routes_from_payload(payload: object) -> list[ModelRoute]:
    if not isinstance(payload, list):
        raise RuntimeError("MODEL_ROUTES_FILE must contain a JSON list")
    routes: list[ModelRoute] = []
    for idx, item in enumerate(payload):
        if isinstance(item, str):
            item = {"model": item}
        if not isinstance(item, dict):
            raise RuntimeError(f"MODEL_ROUTES_FILE[{idx}] must be a string or object")
        model = str(item.get("model", "")).strip()
        if not model:
            raise RuntimeError(f"MODEL_ROUTES_FILE[{idx}] is missing 'model'")
        alias = str(item.get("alias") or "").strip() or None
        routes.append(ModelRoute(model=model, alias=alias))
    return routes


def _load_routes_file(path_value: str) -> list[ModelRoute]:
    path = resolve_path(path_value)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuntimeError(f"Failed to read MODEL_ROUTES_FILE at '{path}': {exc}") from exc
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"Invalid JSON in MODEL_ROUTES_FILE '{path}': {exc}") from exc
    return _routes_from_payload(payload)


def load_routes() -> list[ModelRoute]:
    if settings.MODEL_ROUTES_FILE:
        routes = _load_routes_file(settings.MODEL_ROUTES_FILE)
    else:
        routes = parse_routes(settings.MODEL_ROUTES)
    if not routes:
        raise RuntimeError("No model routes configured. Set MODEL_ROUTES or MODEL_ROUTES_FILE.")
    return routes
