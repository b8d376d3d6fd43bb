"""
FITSIGHT Core

Application-wide configuration.
"""
