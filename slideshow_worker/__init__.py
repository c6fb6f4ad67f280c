"""Slideshow worker: images → MP4 → Google Drive / Facebook / Instagram / TikTok."""

__version__ = "0.1.0"
