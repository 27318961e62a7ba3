"""Video Snipper: stream the minute of video leading up to a marked moment."""

__version__ = "1.0.0"
