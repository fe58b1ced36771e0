"""Score and timing helpers for finished tickets."""

from dataclasses import dataclass
from typing import Optional
import time

from app.utils.rounding import round_half_up


def calculate_percentage(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(correct / total * 100)


def grade_emoji(percentage: int) -> str:
    if percentage >= 90:
        return "🏆"
    if percentage >= 70:
        return "👍"
    if percentage >= 50:
        return "📚"
    return "💪"


def grade_text(percentage: int) -> str:
    if percentage >= 90:
        return "Excellent!"
    if percentage >= 70:
        return "Good job!"
    if percentage >= 50:
        return "Satisfactory"
    return "Keep practising"


@dataclass(frozen=True)
class TimeSpent:
    minutes: int
    seconds: int
    total_seconds: int

    @property
    def formatted(self) -> str:
        if self.minutes > 0:
            return f"{self.minutes} min {self.seconds} sec"
        return f"{self.seconds} sec"


def time_spent(started_at: float, finished_at: Optional[float] = None) -> TimeSpent:
    end = time.time() if finished_at is None else finished_at
    total = max(0, int(end - started_at))
    return TimeSpent(minutes=total // 60, seconds=total % 60, total_seconds=total)


def is_passed(correct: int, total: int, passing_percentage: int = 80) -> bool:
    return calculate_percentage(correct, total) >= passing_percentage
