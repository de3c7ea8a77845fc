"""Self-hosted encrypted secret store that deploys plaintext copies to ephemeral storage."""

__version__ = "1.0.0"
