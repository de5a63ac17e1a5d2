"""Command-line interface for RelationScope."""
