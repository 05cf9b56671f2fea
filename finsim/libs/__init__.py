"""Shared helpers for finsim."""
