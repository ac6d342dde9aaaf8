"""Document format handlers."""
