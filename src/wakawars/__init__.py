"""WakaWars core: WakaTime sync, leaderboards, achievements and rank rewards."""

__version__ = "0.1.0"
