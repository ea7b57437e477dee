"""Slack event bridge."""
