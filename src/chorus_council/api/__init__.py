"""HTTP API for the Chorus Council engine."""
