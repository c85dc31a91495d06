"""Real-time lobby server: presence, chat relay and jackpot records."""

__version__ = "0.1.0"
