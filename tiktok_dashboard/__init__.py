"""TikTok + TikTok Shop integration backend for the dashboard"""

__version__ = "1.0.0"
