"""HTTP boundary for the CTS engine."""
