"""Game top-up backend."""
