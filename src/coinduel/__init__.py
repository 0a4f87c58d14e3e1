"""coinduel — two-player coin collection over a pub/sub channel."""

__version__ = "0.1.0"
