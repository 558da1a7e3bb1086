"""
estateslots - property viewing availability for real-estate agents.
"""

__version__ = "0.1.0"
