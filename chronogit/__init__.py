"""
chronogit — Mirror commit metadata from selected repositories into one
GitHub repository.
"""

__version__ = "0.1.0"
