"""Pipeline stage services."""
