"""Configuration loading for Usage Monitor."""
