"""Scheduler job bookkeeping."""
