"""Core configuration for the ChatChain application."""
