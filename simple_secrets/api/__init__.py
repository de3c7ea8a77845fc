"""HTTP layer: admin JSON API and the internal container surface."""
