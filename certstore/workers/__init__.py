"""Scheduled maintenance workers."""
