"""Flask JSON API, Entity Access Layer, record stores and background jobs."""
