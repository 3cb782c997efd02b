"""Ordered model failover against the Gemini generateContent API."""

from dataclasses import dataclass, field
from typing import Callable

import requests

from ched_chat.chat.routes import ModelRoute, load_routes
from ched_chat.config import settings
from ched_chat.ops.http import post_json
from ched_chat.ops.logging import log_event
from ched_chat.ops.metrics import inc_model_attempt, observe_model_attempt_latency, timer
from ched_chat.schemas import Turn


@dataclass
class AttemptResult:
    model: str
    text: str | None = None
    error: str = ""
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return bool(self.text)

    @property
    def outcome(self) -> str:
        if self.ok:
            return "success"
        if self.status_code is None:
            return "transport_error"
        if self.status_code == 404:
            return "not_found"
        if 200 <= self.status_code < 300:
            return "empty"
        return f"http_{self.status_code}"


@dataclass
class FailoverOutcome:
    text: str
    ok: bool
    model: str | None = None
    attempts: list[AttemptResult] = field(default_factory=list)


def normalize_conversation(turns: list[Turn]) -> list[dict]:
    """Shape turns for the provider: two roles, first text segment only."""
    contents: list[dict] = []
    for turn in turns:
        role = "user" if turn.role.strip().lower() == "user" else "model"
        contents.append({"role": role, "parts": [{"text": turn.first_text()}]})
    return contents


def extract_text(body: dict) -> str | None:
    candidates = body.get("candidates") or []
    for candidate in candidates:
        content = (candidate or {}).get("content") or {}
        for part in content.get("parts") or []:
            text = (part or {}).get("text")
            if isinstance(text, str) and text.strip():
                return text
    return None


def _empty_reason(body: dict) -> str:
    if not body.get("candidates"):
        block_reason = (body.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            return f"no candidates (blockReason={block_reason})"
        return "no candidates"
    return "candidates contained no text"


def _error_message(response: requests.Response) -> str:
    try:
        detail = response.json().get("error", {}).get("message", "")
    except (ValueError, AttributeError):
        detail = ""
    detail = detail or response.text[:200]
    return f"HTTP {response.status_code}: {detail}".strip()


class ModelFailover:
    """Try each model route in order until one returns text.

    Attempts are sequential and isolated: a failure on one identifier only
    moves the loop on. A 404 on a route with an alias gets one extra attempt
    against that alias before moving to the next route.
    """

    def __init__(
        self,
        routes: list[ModelRoute],
        base_url: str | None = None,
        timeout_sec: float | None = None,
        post: Callable[..., requests.Response] = post_json,
    ) -> None:
        if not routes:
            raise ValueError("ModelFailover needs at least one route")
        self.routes = list(routes)
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.timeout_sec = timeout_sec if timeout_sec is not None else settings.MODEL_TIMEOUT_SEC
        self._post = post

    @classmethod
    def from_settings(cls) -> "ModelFailover":
        return cls(load_routes())

    def _payload(self, turns: list[Turn], instruction: str) -> dict:
        return {
            "contents": normalize_conversation(turns),
            "systemInstruction": {"parts": [{"text": instruction}]},
            "generationConfig": {
                "temperature": settings.MODEL_TEMPERATURE,
                "maxOutputTokens": settings.MODEL_MAX_OUTPUT_TOKENS,
            },
        }

    def _attempt(
        self, model: str, payload: dict, headers: dict, request_id: str | None
    ) -> AttemptResult:
        url = f"{self.base_url}/models/{model}:generateContent"
        with timer() as elapsed:
            result = self._send(model, url, payload, headers)
        sec = elapsed()
        observe_model_attempt_latency(sec)
        inc_model_attempt(model, result.outcome)
        log_event(
            {
                "type": "model_attempt",
                "request_id": request_id,
                "model": model,
                "outcome": result.outcome,
                "status_code": result.status_code,
                "elapsed_sec": sec,
            }
        )
        return result

    def _send(self, model: str, url: str, payload: dict, headers: dict) -> AttemptResult:
        try:
            response = self._post(url, payload, timeout=self.timeout_sec, headers=headers, retries=0)
        except requests.exceptions.RequestException as exc:
            return AttemptResult(model=model, error=f"{type(exc).__name__}: {exc}")

        status = response.status_code
        if not 200 <= status < 300:
            return AttemptResult(model=model, error=_error_message(response), status_code=status)

        try:
            body = response.json()
        except ValueError as exc:
            return AttemptResult(model=model, error=f"Invalid JSON body: {exc}", status_code=status)
        if not isinstance(body, dict):
            return AttemptResult(model=model, error="Unexpected response shape", status_code=status)

        text = extract_text(body)
        if text is None:
            return AttemptResult(model=model, error=_empty_reason(body), status_code=status)
        return AttemptResult(model=model, text=text, status_code=status)

    def run(
        self,
        turns: list[Turn],
        instruction: str,
        credential: str,
        request_id: str | None = None,
    ) -> FailoverOutcome:
        key = (credential or "").strip()
        if not key:
            return FailoverOutcome(text="No API credential configured", ok=False)

        payload = self._payload(turns, instruction)
        headers = {"x-goog-api-key": key}
        attempts: list[AttemptResult] = []

        for route in self.routes:
            result = self._attempt(route.model, payload, headers, request_id)
            attempts.append(result)
            if result.ok:
                return FailoverOutcome(text=result.text, ok=True, model=route.model, attempts=attempts)

            if result.status_code == 404 and route.alias and route.alias != route.model:
                result = self._attempt(route.alias, payload, headers, request_id)
                attempts.append(result)
                if result.ok:
                    return FailoverOutcome(
                        text=result.text, ok=True, model=route.alias, attempts=attempts
                    )

        last_error = attempts[-1].error if attempts else "No model routes attempted"
        return FailoverOutcome(text=last_error, ok=False, attempts=attempts)

    def call(self, turns: list[Turn], instruction: str, credential: str) -> tuple[str, bool]:
        outcome = self.run(turns, instruction, credential)
        return outcome.text, outcome.ok
