"""Hangjegyzet meeting upload service."""
