"""HTTP routers for the Kabo server."""
