from reco_core.config import AFTERNOON_HOURS, EVENING_HOURS, MORNING_HOURS
from reco_core.types import TimeOfDay


def bucket_for_hour(hour: int) -> TimeOfDay:
    """[6,12) morning, [12,17) afternoon, [17,22) evening, anything else night."""
    if MORNING_HOURS[0] <= hour < MORNING_HOURS[1]:
        return TimeOfDay.MORNING
    if AFTERNOON_HOURS[0] <= hour < AFTERNOON_HOURS[1]:
        return TimeOfDay.AFTERNOON
    if EVENING_HOURS[0] <= hour < EVENING_HOURS[1]:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT
