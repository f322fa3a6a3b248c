"""Slot-release booking racer for the cult.fit PLAY platform."""

__version__ = "0.1.0"
