"""Live audio relay between streaming clients and a hosted transcription service."""

__version__ = "0.1.0"
