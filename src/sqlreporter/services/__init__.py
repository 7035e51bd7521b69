"""Report execution, export and delivery services."""
