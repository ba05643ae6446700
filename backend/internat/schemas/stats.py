"""Schéma des compteurs du tableau de bord administrateur."""

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_aed: int
    total_students: int
    total_attendance_records: int
    total_recaps: int
