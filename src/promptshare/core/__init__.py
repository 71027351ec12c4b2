"""Core building blocks: configuration, models, errors, categories and cache."""
