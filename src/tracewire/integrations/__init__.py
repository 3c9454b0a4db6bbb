"""Adapters that feed third-party framework events into tracewire."""
