"""HTTP layer - routers, middleware, dependencies."""
