# src/taskpulse/core/errors.py

from __future__ import annotations


class TaskPulseError(Exception):
    """Base class for errors raised by taskpulse components."""


class TrackerError(TaskPulseError):
    """The task tracker could not be reached or answered with something that is not JSON."""


class RenderError(TaskPulseError):
    """Generative rendering failed or produced unusable text."""


class DeliveryError(TaskPulseError):
    """The report could not be delivered to the chat. Fatal for the run."""
