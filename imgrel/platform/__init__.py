"""Process and filesystem adapters."""
