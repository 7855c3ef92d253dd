"""Optional integrations with external infrastructure."""
