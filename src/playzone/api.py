"""Convert console view models to JSON friendly dictionaries."""

from __future__ import annotations

from typing import Dict, Sequence

from .polling import PollSnapshot
from .settings import DisplaySettings
from .views import BoardCard, board_cards


class ApiExporter:
    """Shape the payloads served to the live display board script."""

    def board_snapshot(
        self,
        cards: Sequence[BoardCard],
        *,
        now_ms: int,
        display: DisplaySettings | None = None,
        error: str | None = None,
    ) -> Dict[str, object]:
        options = display or DisplaySettings()
        return {
            "server_now_ms": now_ms,
            "error": error,
            "display": {
                "show_timer": options.show_timer,
                "show_parent_name": options.show_parent_name,
                "show_children_count": options.show_children_count,
                "highlight_active": options.highlight_active,
            },
            "sessions": [self._serialise_card(card, options) for card in cards],
        }

    def from_poll(self, snapshot: PollSnapshot, *, display: DisplaySettings | None = None) -> Dict[str, object]:
        cards = board_cards(snapshot.rows, snapshot.now_ms)
        return self.board_snapshot(cards, now_ms=snapshot.now_ms, display=display, error=snapshot.error)

    def _serialise_card(self, card: BoardCard, display: DisplaySettings) -> Dict[str, object]:
        payload = card.as_dict()
        if not display.show_parent_name:
            payload["parent_name"] = ""
        if not display.show_children_count:
            payload["children_count"] = None
        return payload


__all__ = ["ApiExporter"]
