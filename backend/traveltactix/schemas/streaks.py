from datetime import date

from pydantic import BaseModel


class Streak(BaseModel):
    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_login_date: date | None = None
    total_logins: int = 0


class StreakCheckIn(BaseModel):
    streak: Streak
    already_checked_in: bool = False
    xp_earned: int = 0
    milestone: int | None = None
