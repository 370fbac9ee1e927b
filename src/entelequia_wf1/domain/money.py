"""Parsing e formatação de valores monetários."""

from __future__ import annotations

import math
from typing import Any

from entelequia_wf1.domain.models import Money


def parse_money(value: Any) -> Money | None:
    """Converte {amount, currency} (amount numérico ou string) em Money."""

    if not isinstance(value, dict):
        return None
    currency = value.get("currency")
    if not isinstance(currency, str) or not currency.strip():
        return None

    raw_amount = value.get("amount")
    amount: float | None = None
    if isinstance(raw_amount, bool):
        amount = None
    elif isinstance(raw_amount, int | float):
        amount = float(raw_amount)
    elif isinstance(raw_amount, str) and raw_amount.strip():
        try:
            amount = float(raw_amount)
        except ValueError:
            amount = None

    if amount is None or not math.isfinite(amount):
        return None
    return Money(amount=amount, currency=currency.strip())


def format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


def format_money(money: Money) -> str:
    """Formato "$<amount> <currency>" (ex.: "$2500 ARS")."""

    return f"${format_amount(money.amount)} {money.currency}".strip()
