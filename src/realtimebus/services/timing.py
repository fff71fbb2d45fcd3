"""Time-relative arrival state: walk time, catchability and display labels.

Every function takes `now` (unix seconds) explicitly so results do not depend
on the wall clock.
"""

import math

# Comfortable walking pace, about 80 m/min
WALK_SPEED_MPS = 1.33

# Seconds of slack required on top of the walk to call an arrival catchable
CATCH_BUFFER_SEC = 30

# Labels switch to "departed" below this many seconds before now
DEPARTED_AFTER_SEC = -60

# Labels switch to "arriving" below this many seconds from now
ARRIVING_WITHIN_SEC = 30

# Arrivals further in the past than this no longer keep a direction or stop visible
TERMINAL_AFTER_SEC = -120

DEPARTED = "departed"
ARRIVING = "arriving"
LEAVE_NOW = "leave now"


def walk_time_seconds(distance_meters: float) -> float:
    """Walking time to cover a distance at 1.33 m/s."""
    return distance_meters / WALK_SPEED_MPS


def is_catchable(effective_time: float, walk_time_sec: float, now: float) -> bool:
    """Whether the rider reaches the stop with at least the buffer to spare.

    Exactly at the boundary is not catchable.
    """
    return effective_time - now > walk_time_sec + CATCH_BUFFER_SEC


def is_departed(effective_time: float, now: float) -> bool:
    return effective_time - now < DEPARTED_AFTER_SEC


def is_terminal(effective_time: float, now: float) -> bool:
    """True once an arrival is more than two minutes in the past."""
    return effective_time - now < TERMINAL_AFTER_SEC


def format_arrival(effective_time: float, now: float) -> str:
    """Label for when the bus arrives: "departed", "arriving" or "N min"."""
    diff = effective_time - now
    if diff < DEPARTED_AFTER_SEC:
        return DEPARTED
    if diff < ARRIVING_WITHIN_SEC:
        return ARRIVING
    # half-minutes round up
    minutes = math.floor(diff / 60 + 0.5)
    return f"{minutes} min"


def format_leave_in(effective_time: float, walk_time_sec: float, now: float) -> str:
    """Label for when the rider has to leave: "leave now" or "leave in N min".

    "departed" and "arriving" use the same thresholds as format_arrival.
    """
    diff = effective_time - now
    if diff < DEPARTED_AFTER_SEC:
        return DEPARTED
    if diff < ARRIVING_WITHIN_SEC:
        return ARRIVING
    leave_in_secs = diff - walk_time_sec
    if leave_in_secs < 60:
        return LEAVE_NOW
    return f"leave in {math.floor(leave_in_secs / 60)} min"
