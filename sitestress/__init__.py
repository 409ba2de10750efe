"""sitestress: simulated-user load testing and capacity discovery for websites."""

__version__ = "0.1.0"
