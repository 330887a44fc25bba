"""
File gateway: uploads, ranged downloads and deletes in front of a pluggable storage backend.
"""
