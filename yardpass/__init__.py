"""YardPass client service layer."""

__version__ = "0.1.0"
