"""Next-available-slot engine, staleness sweeps and booking notifications."""

__version__ = "1.0.0"
