"""Watch engine for GitHub pull requests."""
