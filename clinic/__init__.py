"""
Clinic Appointment Service

A FastAPI-based clinic management backend: JWT authentication with
admin/doctor/patient roles, appointment booking with slot-conflict
detection, appointment lifecycle management and dashboard statistics.
"""

__version__ = "1.0.0"
