# barbershop/data.py

# Services seeded into an empty database: id -> (name, duration minutes, price)
DEFAULT_SERVICES = {
    "haircut": ("Haircut", 30, 50),
    "beard_trim": ("Beard trim", 30, 35),
    "cut_and_beard": ("Haircut and beard", 60, 80),
    "fade": ("Fade", 45, 60),
    "kids_cut": ("Kids haircut", 30, 40),
}

shop_settings = {
    "open_time": "09:00",
    "lunch_start": "12:30",   # last morning slot; 13:00-13:30 are not offered
    "lunch_end": "14:00",
    "last_slot": "18:30",     # last bookable start, also the self-service cutoff
    "walk_in_close": "18:00", # latest end for walk-in suggestions
    "slot_minutes": 30,
    "default_duration": 30,
}

notification_defaults = {
    "enabled": True,
    "alert_times": [20, 10, 5],
    "show_in_app": True,
}

ADMIN_ALERT_MINUTES = 5
OVERRUN_ALERT_EVERY = 5
