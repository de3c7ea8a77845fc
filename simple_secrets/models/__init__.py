"""Entity and schema models."""
