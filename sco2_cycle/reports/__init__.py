"""Report generation for saved cycle records."""
