"""driverelay - resumable TUS uploads relayed to a shared drive or bucket."""

__version__ = "0.1.0"
