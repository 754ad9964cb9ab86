"""
Mirror Sync — Keep a patched mirror of an upstream git repository and
build images for the refs that changed.
"""

__version__ = "0.1.0"
