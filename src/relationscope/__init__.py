"""RelationScope: relationship diagnostic reports from chat transcripts."""

__version__ = "0.1.0"
