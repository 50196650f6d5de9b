"""Component models for the recompression cycle."""
