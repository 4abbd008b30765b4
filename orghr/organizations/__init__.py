"""Organizations: tenants and their employees."""
