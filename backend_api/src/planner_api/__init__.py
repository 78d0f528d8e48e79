"""Personal planner backend: weekly routine calendar layout plus budgets, study and wellness tracking."""

__version__ = "0.1.0"
