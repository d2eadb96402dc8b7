"""ShelVey core: deliverable approval workflow service."""

__version__ = "1.0.0"
