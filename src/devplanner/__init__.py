"""DevPlanner: natural-language task planner assistant."""

__version__ = "0.1.0"
