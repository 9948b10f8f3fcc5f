"""Volunteer portal workflow and automation engine."""
