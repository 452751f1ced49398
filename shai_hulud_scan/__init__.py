"""Detect npm packages compromised in the Shai-Hulud supply chain attack."""

__version__ = "1.0.0"
