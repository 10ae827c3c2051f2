"""Operational scripts for ShadeFast Stage."""
