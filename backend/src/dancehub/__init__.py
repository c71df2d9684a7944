"""DanceHub API backend."""
