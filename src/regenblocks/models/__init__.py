"""Configuration models for regenblocks."""
