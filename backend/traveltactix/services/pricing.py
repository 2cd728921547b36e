"""통화 관련 헬퍼 (INR 표기, 할인 계산)"""
from __future__ import annotations

import math

# 대략적인 시장 환율
USD_TO_INR_RATE = 83


def round_half_up(value: float) -> int:
    # .5 는 항상 올림 (2.5 -> 3, -2.5 -> -2)
    return math.floor(value + 0.5)


def usd_to_inr(amount_usd: float, rate: float = USD_TO_INR_RATE) -> int:
    return round_half_up(amount_usd * rate)


def apply_discount(amount: float, discount_percent: float) -> int:
    return round_half_up(amount * (1 - discount_percent / 100))


def _group_indian(digits: str) -> str:
    # 마지막 3자리 이후로는 2자리씩 묶음 (1,00,000)
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_inr(amount_inr: float) -> str:
    # 음수는 절댓값 기준으로 반올림 (-2.5 -> -₹3)
    value = round_half_up(abs(amount_inr))
    sign = "-" if amount_inr < 0 and value else ""
    return f"{sign}₹{_group_indian(str(value))}"
