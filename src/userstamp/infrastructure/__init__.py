"""Infrastructure layer: ORM and web framework integrations."""
