"""HTTP transport for the read-only query surface."""
