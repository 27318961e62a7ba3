"""Clip pipeline services."""
