"""
Timeslot System Module

This module provides the slot layer of the weekly timetable engine. It
separates the candidate slot grid from the mechanisms that decide which
candidate a lecture tries, and from the checks run against a placement.

Architecture:
    - timeslot_grid.py: Candidate (day, slot) sequence for one request
    - timeslot_constraints.py: Pluggable constraint evaluators
    - controllers/: Pluggable cursor strategies over the candidate sequence
        - first_fit_controller.py: Chronological first-fit scan
        - round_robin_controller.py: Day-interleaved even distribution
"""

__version__ = "1.0.0"
