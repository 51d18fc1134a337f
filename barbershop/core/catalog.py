# barbershop/core/catalog.py

from barbershop.data import shop_settings
from barbershop.core.timeutils import minutes_to_time, time_to_minutes

SLOT_MINUTES = shop_settings["slot_minutes"]
DEFAULT_DURATION = shop_settings["default_duration"]

OPENING_TIME = shop_settings["open_time"]
LAST_SLOT_TIME = shop_settings["last_slot"]
# Walk-in suggestions must end by this time, earlier than the last catalog slot.
WALK_IN_CLOSING_TIME = shop_settings["walk_in_close"]


def build_slot_catalog(settings: dict = shop_settings) -> tuple:
    """Bookable start times for one day, ascending, lunch gap excluded."""
    step = settings["slot_minutes"]
    ranges = [
        (settings["open_time"], settings["lunch_start"]),
        (settings["lunch_end"], settings["last_slot"]),
    ]
    slots = []
    for first, last in ranges:
        current = time_to_minutes(first)
        end = time_to_minutes(last)
        while current <= end:
            slots.append(minutes_to_time(current))
            current += step
    return tuple(slots)


SLOT_CATALOG = build_slot_catalog()


def is_catalog_slot(time: str) -> bool:
    return time in SLOT_CATALOG
