from __future__ import annotations

from django import template

register = template.Library()

LAKH = 100_000
CRORE = 10_000_000


def _group_indian(whole: int) -> str:
    digits = str(abs(whole))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        pairs = []
        while len(head) > 2:
            pairs.insert(0, head[-2:])
            head = head[:-2]
        if head:
            pairs.insert(0, head)
        digits = ",".join(pairs + [tail])
    return f"-{digits}" if whole < 0 else digits


@register.filter
def indian_units(value):
    """Format a rupee amount as 12,345 / 1.2 Lakhs / 3.4 Crores."""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return ""
    if amount < LAKH:
        return _group_indian(int(round(amount)))
    if amount < CRORE:
        return f"{amount / LAKH:.1f} Lakhs"
    return f"{amount / CRORE:.1f} Crores"


@register.filter
def per_set(value_per_rm, assembly):
    """Scale a per-running-metre figure up to one assembly set."""
    metres = getattr(assembly, "running_metres_per_set", None)
    if value_per_rm is None or metres is None:
        return ""
    return float(value_per_rm) * metres
