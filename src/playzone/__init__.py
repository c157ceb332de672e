"""PlayZone front-desk console for an indoor children's playground."""

from .api import ApiExporter
from .client import ApiClient, PlayZoneBackend
from .earnings import EarningRow, EarningsSummary, earning_rows, filter_earnings, summarize_earnings
from .exceptions import (
    ApiError,
    NotFoundError,
    PlayZoneError,
    SessionStateError,
    TransportError,
    ValidationError,
)
from .memory import InMemoryBackend, PricingRules
from .models import (
    Child,
    ChildInput,
    ParentDetail,
    ParentSummary,
    PaymentMethod,
    RewardSummary,
    Session,
    SessionStatus,
)
from .ops import HealthMonitor, StructuredLogger
from .polling import LivenessToken, PollSnapshot, SessionPoller
from .settings import ConsoleSettings, DisplaySettings, SettingsStore
from .timing import Countdown, countdown, format_clock, format_duration, is_near_expiry
from .views import BoardCard, board_cards, dashboard_summary, session_counts, session_detail, session_rows

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiExporter",
    "BoardCard",
    "Child",
    "ChildInput",
    "ConsoleSettings",
    "Countdown",
    "DisplaySettings",
    "EarningRow",
    "EarningsSummary",
    "HealthMonitor",
    "InMemoryBackend",
    "LivenessToken",
    "NotFoundError",
    "ParentDetail",
    "ParentSummary",
    "PaymentMethod",
    "PlayZoneBackend",
    "PlayZoneError",
    "PollSnapshot",
    "PricingRules",
    "RewardSummary",
    "Session",
    "SessionPoller",
    "SessionStateError",
    "SessionStatus",
    "SettingsStore",
    "StructuredLogger",
    "TransportError",
    "ValidationError",
    "board_cards",
    "countdown",
    "dashboard_summary",
    "earning_rows",
    "filter_earnings",
    "format_clock",
    "format_duration",
    "is_near_expiry",
    "session_counts",
    "session_detail",
    "session_rows",
    "summarize_earnings",
]
