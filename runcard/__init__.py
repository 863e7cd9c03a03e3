"""
runcard: put a running-record screenshot on top of a photo.

Smart-crops the record, mattes out its background, recolors it and
composites it with a drop shadow at the photo's native resolution.
"""

__version__ = "1.0.0"
