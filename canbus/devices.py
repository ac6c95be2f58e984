"""Catalogue of supported CAN interface devices."""

from __future__ import annotations

_PLACEHOLDER_DEVICE = "NULL"

# (vendor, link, models) in device type order.
_FAMILIES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("ZLG", "USB", ("CAN1", "CAN2")),
    ("ZLG", "USB", ("CANFDMINI",) + tuple(f"CANFD{n}00U" for n in (1, 2, 4, 8))),
    ("ZLG", "NET", tuple(f"CANFD{n}00U" for n in (2, 4, 8))),
    ("GC", "USB", ("CANFD",)),
)


def _family_names():
    for vendor, link, models in _FAMILIES:
        for model in models:
            yield "-".join((vendor, link, model))


def get_support_device_type() -> list[str]:
    """Names of the supported device types, in device type order."""
    return [_PLACEHOLDER_DEVICE, *_family_names()]