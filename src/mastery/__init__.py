"""Progress & mastery engine: SM-2 scheduling, XP, streaks and achievements."""
