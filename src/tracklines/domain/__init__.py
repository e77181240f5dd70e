"""Domain layer for tracklines.

Pure duration arithmetic and view projections. Nothing in this package
touches storage or the event loop.
"""
