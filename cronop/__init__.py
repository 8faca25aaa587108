"""Cron schedules, CronJob reconciliation against an in-memory store, and CronJob defaulting and validation."""

__version__ = "0.1.0"