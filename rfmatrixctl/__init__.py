"""Control and monitoring client for RF matrix switches speaking the bracketed ASCII protocol."""

__version__ = "0.1.0"
