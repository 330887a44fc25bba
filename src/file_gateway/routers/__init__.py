"""HTTP routers of the file gateway."""
