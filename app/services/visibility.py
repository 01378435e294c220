from datetime import datetime, timedelta

ROOM_DETAILS_LEAD = timedelta(minutes=30)
ACTIVE_AFTER_START = timedelta(minutes=15)


def show_room_details(start_time: datetime, now: datetime) -> bool:
    """Room id/password become visible 30 minutes before start and stay visible afterwards."""
    return start_time - now <= ROOM_DETAILS_LEAD


def is_active_for_player(start_time: datetime, now: datetime) -> bool:
    """A joined tournament stays listed until 15 minutes past its start."""
    return now - start_time <= ACTIVE_AFTER_START
