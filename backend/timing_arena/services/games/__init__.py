"""Game domain services: rooms, rounds, scoring, leaderboard and timers.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics. Coordinator and registry operations return
lists of ``Outbound`` messages instead of emitting them.
"""
