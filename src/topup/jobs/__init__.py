"""Scheduled jobs."""

from .expiry_sweep import register_scheduler, run_sweep_once

__all__ = ["register_scheduler", "run_sweep_once"]
