"""Transports, persistence and scheduling used by the crawler."""
