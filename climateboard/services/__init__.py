"""Service layer: external API clients, caching and quota."""
