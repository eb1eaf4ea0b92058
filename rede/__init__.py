"""rede: read-only EXIF metadata lookup for remote images."""

__version__ = "0.1.0"
