"""HTTP API: routes, request schemas and dependency providers."""
