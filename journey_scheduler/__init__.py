"""Patient journey scheduler: durable execution of branching, time-delayed journeys."""

__version__ = "1.0.0"
