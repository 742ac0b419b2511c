"""Scorebook: event-sourced match scoring."""
