"""Recurring reminders with live countdowns, served over FastAPI."""
