"""Chat-completion clients used by the suggestion oracle."""
