"""
Configuration module for the Bhumi Consultancy backend.
"""

from .settings import Settings, get_settings, setup_logging

__version__ = "1.0.0"

__all__ = ['Settings', 'get_settings', 'setup_logging']
