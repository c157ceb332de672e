"""Console settings held in memory for the lifetime of the process."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Mapping

from .exceptions import ValidationError
from .money import to_decimal


@dataclass(frozen=True, slots=True)
class ShopSettings:
    name: str = "Kids Play Zone"
    address: str = ""
    phone: str = ""
    open_hour: int = 8
    close_hour: int = 20
    currency_label: str = "Rs."


@dataclass(frozen=True, slots=True)
class PricingSettings:
    """Reference values shown to staff; the API does the actual pricing."""

    hourly_rate: Decimal = Decimal("1200.00")
    min_charge_minutes: int = 30
    default_session_minutes: int = 120
    late_grace_minutes: int = 5


@dataclass(frozen=True, slots=True)
class RewardSettings:
    enabled: bool = True
    note: str = "Rewards are computed by the server per parent."


@dataclass(frozen=True, slots=True)
class PaymentSettings:
    cash: bool = True
    bank_transfer: bool = True
    bank_name: str = ""
    account_name: str = ""
    account_number: str = ""
    reference_hint: str = "Use Parent Name + Session ID as reference."


@dataclass(frozen=True, slots=True)
class DisplaySettings:
    show_timer: bool = True
    show_parent_name: bool = True
    show_children_count: bool = True
    highlight_active: bool = True


@dataclass(frozen=True, slots=True)
class ConsoleSettings:
    shop: ShopSettings = field(default_factory=ShopSettings)
    pricing: PricingSettings = field(default_factory=PricingSettings)
    rewards: RewardSettings = field(default_factory=RewardSettings)
    payments: PaymentSettings = field(default_factory=PaymentSettings)
    display: DisplaySettings = field(default_factory=DisplaySettings)


def validate_settings(settings: ConsoleSettings) -> ConsoleSettings:
    shop = settings.shop
    for label, hour in (("Opening hour", shop.open_hour), ("Closing hour", shop.close_hour)):
        if not 0 <= hour <= 23:
            raise ValidationError(f"{label} must be between 0 and 23.")
    if shop.open_hour >= shop.close_hour:
        raise ValidationError("Opening hour must be before closing hour.")
    if not shop.name.strip():
        raise ValidationError("Shop name is required.")
    pricing = settings.pricing
    if pricing.hourly_rate <= Decimal("0"):
        raise ValidationError("Hourly rate must be greater than zero.")
    if pricing.default_session_minutes <= 0:
        raise ValidationError("Default session length must be greater than zero.")
    if pricing.min_charge_minutes < 0 or pricing.late_grace_minutes < 0:
        raise ValidationError("Minute values cannot be negative.")
    if not (settings.payments.cash or settings.payments.bank_transfer):
        raise ValidationError("Enable at least one payment method.")
    return settings


def _flag(value: Any) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "on", "yes"}


def _int(value: Any, label: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a whole number.") from exc


class SettingsStore:
    """Hold the current :class:`ConsoleSettings` and apply form updates."""

    def __init__(self, initial: ConsoleSettings | None = None) -> None:
        self._current = validate_settings(initial or ConsoleSettings())

    @property
    def current(self) -> ConsoleSettings:
        return self._current

    def replace(self, settings: ConsoleSettings) -> ConsoleSettings:
        self._current = validate_settings(settings)
        return self._current

    def update_from_form(self, form: Mapping[str, Any]) -> ConsoleSettings:
        """Apply a submitted settings form; checkboxes absent from ``form`` are off."""

        base = self._current
        try:
            hourly_rate = to_decimal(form.get("hourly_rate", base.pricing.hourly_rate))
        except TypeError as exc:
            raise ValidationError("Hourly rate must be a number.") from exc
        updated = ConsoleSettings(
            shop=replace(
                base.shop,
                name=str(form.get("shop_name", base.shop.name)).strip(),
                address=str(form.get("address", base.shop.address)).strip(),
                phone=str(form.get("phone", base.shop.phone)).strip(),
                open_hour=_int(form.get("open_hour", base.shop.open_hour), "Opening hour"),
                close_hour=_int(form.get("close_hour", base.shop.close_hour), "Closing hour"),
                currency_label=str(form.get("currency_label", base.shop.currency_label)).strip()
                or base.shop.currency_label,
            ),
            pricing=replace(
                base.pricing,
                hourly_rate=hourly_rate,
                min_charge_minutes=_int(
                    form.get("min_charge_minutes", base.pricing.min_charge_minutes), "Minimum charge"
                ),
                default_session_minutes=_int(
                    form.get("default_session_minutes", base.pricing.default_session_minutes),
                    "Default session length",
                ),
                late_grace_minutes=_int(
                    form.get("late_grace_minutes", base.pricing.late_grace_minutes), "Late grace"
                ),
            ),
            rewards=replace(
                base.rewards,
                enabled=_flag(form.get("rewards_enabled")),
                note=str(form.get("rewards_note", base.rewards.note)).strip(),
            ),
            payments=replace(
                base.payments,
                cash=_flag(form.get("pay_cash")),
                bank_transfer=_flag(form.get("pay_bank_transfer")),
                bank_name=str(form.get("bank_name", base.payments.bank_name)).strip(),
                account_name=str(form.get("account_name", base.payments.account_name)).strip(),
                account_number=str(form.get("account_number", base.payments.account_number)).strip(),
                reference_hint=str(form.get("reference_hint", base.payments.reference_hint)).strip(),
            ),
            display=DisplaySettings(
                show_timer=_flag(form.get("show_timer")),
                show_parent_name=_flag(form.get("show_parent_name")),
                show_children_count=_flag(form.get("show_children_count")),
                highlight_active=_flag(form.get("highlight_active")),
            ),
        )
        return self.replace(updated)

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        current = self._current
        return {
            "shop": {
                "name": current.shop.name,
                "open_hour": current.shop.open_hour,
                "close_hour": current.shop.close_hour,
                "currency_label": current.shop.currency_label,
            },
            "pricing": {
                "hourly_rate": float(current.pricing.hourly_rate),
                "min_charge_minutes": current.pricing.min_charge_minutes,
                "default_session_minutes": current.pricing.default_session_minutes,
            },
            "display": {
                "show_timer": current.display.show_timer,
                "show_parent_name": current.display.show_parent_name,
                "show_children_count": current.display.show_children_count,
                "highlight_active": current.display.highlight_active,
            },
        }


__all__ = [
    "ConsoleSettings",
    "DisplaySettings",
    "PaymentSettings",
    "PricingSettings",
    "RewardSettings",
    "SettingsStore",
    "ShopSettings",
    "validate_settings",
]
