"""Employee directory — Employee model and the employment facts the engine reads."""

from timesheet.employees.models import Employee

__all__ = ["Employee"]
