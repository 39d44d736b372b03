from __future__ import annotations

"""Structured input errors shared by the core, the CLI and the HTTP API."""

from typing import Any


class GameError(ValueError):
    """Rejected intent with a stable code for API/CLI responses."""

    code = "GAME_ERROR"
    default_message = "Request rejected."

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        for key, value in self.context.items():
            if value is not None:
                payload[key] = value
        return payload


class InvalidAmount(GameError):
    code = "INVALID_AMOUNT"
    default_message = "XP amount must be a non-negative whole number."


class EmptyTitle(GameError):
    code = "EMPTY_TITLE"
    default_message = "Quest title must not be empty."


class InvalidXpTier(GameError):
    code = "INVALID_XP_TIER"
    default_message = "Quest XP must be one of the configured tiers."
