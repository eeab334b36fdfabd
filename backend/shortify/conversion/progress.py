"""Progress bar state for the running job."""
import math


def clamp_ratio(ratio) -> float:
    try:
        value = float(ratio)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


def format_percentage(ratio) -> str:
    return f"{clamp_ratio(ratio) * 100:.2f}%"


class ProgressReporter:
    """Clamped, never-decreasing percentage shown while a job converts."""

    def __init__(self):
        self.visible = False
        self.ratio = 0.0

    def start(self) -> None:
        self.ratio = 0.0
        self.visible = True

    def on_sample(self, ratio) -> str:
        # Samples after hide() belong to a finished job
        if self.visible:
            self.ratio = max(self.ratio, clamp_ratio(ratio))
        return self.display

    def hide(self) -> None:
        self.visible = False
        self.ratio = 0.0

    @property
    def display(self) -> str:
        return format_percentage(self.ratio)
