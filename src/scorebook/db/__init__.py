"""Durable event storage over SQLAlchemy async."""
