"""CLI module for majordomo."""
