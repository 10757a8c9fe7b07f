"""Platrum task tracker: HTTP client and the task source adapter."""
