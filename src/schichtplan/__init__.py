"""
Schichtplan - Staff Shift Scheduling

Desktop application for planning employees into area shifts across the week,
with vacation and overtime requests, minimum-staffing checks and hour tracking.
"""

__version__ = "1.0.0"
__author__ = "Schichtplan Team"
