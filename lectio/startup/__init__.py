"""Startup wiring."""
