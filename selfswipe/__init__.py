"""SelfSwipe: swipe through AI-generated hairstyle and outfit variations."""

__version__ = "0.1.0"
