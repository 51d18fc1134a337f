from .timeutils import (
    InvalidTimeError,
    minutes_to_time,
    overlaps,
    round_to_next_slot,
    time_to_minutes,
)
from .catalog import (
    LAST_SLOT_TIME,
    OPENING_TIME,
    SLOT_CATALOG,
    WALK_IN_CLOSING_TIME,
)
from .slots import (
    calculate_next_available_time,
    find_next_available_slot,
    get_available_time_slots,
    get_clients_before_time,
    get_queue_status,
    get_wait_time_before_time,
    is_time_slot_available,
    suggest_booking,
)
from .deviation import (
    Deviation,
    ScheduleImpact,
    calculate_adjusted_time,
    calculate_schedule_impact,
    calculate_time_deviation,
    get_subsequent_appointments,
)
