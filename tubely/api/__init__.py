"""HTTP layer: routes, dependencies, error mapping and middleware."""
