"""HTTP routers for the inbox API."""
