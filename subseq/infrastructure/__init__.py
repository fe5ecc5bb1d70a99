"""
Infrastructure package for the subsampling pipeline.

This package contains infrastructure components including store persistence,
logging, and other cross-cutting concerns.
"""
