"""
Adapter layer for the file gateway.

Contains the storage capability and its local filesystem and S3 implementations.
The deployment mode in settings decides which one a running app uses.
"""
