"""Traffic-light status for accuracy figures."""

from app.schemas.progress import ProgressColor

# Width of the yellow band just below the threshold, in percentage points
ATTENTION_BAND = 5.0


def get_progress_color(accuracy: float | None, threshold: float = 70.0) -> ProgressColor:
    """Green at/above *threshold*, yellow within 5 points below it, red otherwise."""
    if accuracy is None:
        return ProgressColor(color="red", status="No data")
    if accuracy >= threshold:
        return ProgressColor(color="green", status="On track")
    if accuracy >= threshold - ATTENTION_BAND:
        return ProgressColor(color="yellow", status="Attention needed")
    return ProgressColor(color="red", status="Struggling")
