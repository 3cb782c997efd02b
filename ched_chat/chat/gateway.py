"""Chat gateway: guardrail, remote failover, local fallback."""

import hashlib
from dataclasses import dataclass

from ched_chat.chat.failover import ModelFailover
from ched_chat.chat.fallback import latest_user_text, respond
from ched_chat.chat.guardrails import SCREEN_REFUSAL, analyze_message_risk, compose
from ched_chat.config import settings
from ched_chat.ops.logging import log_event
from ched_chat.ops.metrics import inc_fallback_answers, inc_screen_block
from ched_chat.records.store import RecordStore
from ched_chat.schemas import Turn


class InvalidConversation(ValueError):
    """The caller sent a conversation the gateway cannot route."""


@dataclass
class GatewayReply:
    text: str
    source: str
    model: str | None = None
    fallback_reason: str | None = None


def _short_hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]


def message_metadata(message: str) -> dict[str, str | int]:
    clean = message.strip()
    return {"q_hash": _short_hash(clean), "q_len": len(clean)}


class ChatGateway:
    """Always produce an answer once the conversation itself is valid.

    Without a credential every request goes straight to the local responder.
    With one, the failover chain runs first and anything it cannot answer
    falls through to the local responder.
    """

    def __init__(
        self,
        store: RecordStore,
        failover: ModelFailover | None,
        credential: str = "",
        screen_enabled: bool | None = None,
    ) -> None:
        self.store = store
        self.failover = failover
        self.credential = (credential or "").strip()
        self.screen_enabled = (
            settings.ENABLE_PROMPT_SCREEN if screen_enabled is None else screen_enabled
        )

    @property
    def remote_enabled(self) -> bool:
        return bool(self.credential) and self.failover is not None

    def reply(
        self,
        turns: list[Turn],
        system_context: str = "",
        request_id: str | None = None,
    ) -> GatewayReply:
        if not turns:
            raise InvalidConversation("chatHistory must contain at least one turn")

        message = latest_user_text(turns)
        screened = self._maybe_screen_block(message, request_id)
        if screened is not None:
            return screened

        if not self.remote_enabled:
            return self._local_reply(turns, request_id, reason="no_credential")

        instruction = compose(system_context)
        try:
            outcome = self.failover.run(turns, instruction, self.credential, request_id=request_id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event(
                {
                    "type": "chat_remote_error",
                    "request_id": request_id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                }
            )
            return self._local_reply(turns, request_id, reason="remote_error")

        if outcome.ok:
            return GatewayReply(text=outcome.text, source="remote", model=outcome.model)

        log_event(
            {
                "type": "chat_remote_exhausted",
                "request_id": request_id,
                "models": [attempt.model for attempt in outcome.attempts],
                "last_error": outcome.text,
            }
        )
        return self._local_reply(turns, request_id, reason="remote_exhausted")

    def _local_reply(self, turns: list[Turn], request_id: str | None, reason: str) -> GatewayReply:
        inc_fallback_answers(reason)
        log_event({"type": "chat_fallback", "request_id": request_id, "reason": reason})
        return GatewayReply(text=respond(turns, self.store), source="local", fallback_reason=reason)

    def _maybe_screen_block(self, message: str, request_id: str | None) -> GatewayReply | None:
        if not self.screen_enabled:
            return None
        risk = analyze_message_risk(message)
        if not risk["blocked"]:
            return None
        for category in risk["categories"]:
            inc_screen_block(category)
        log_event(
            {
                "type": "screen_block",
                "request_id": request_id,
                "categories": risk["categories"],
                **message_metadata(message),
            }
        )
        return GatewayReply(text=SCREEN_REFUSAL, source="screen")
