"""Configuration — runtime settings and profile loading."""
