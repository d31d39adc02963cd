"""Domain modules for the OpenRouter credit monitor."""
