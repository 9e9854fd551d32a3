"""Web framework integration."""
