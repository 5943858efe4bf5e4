"""Tests for the flux_fleet.engine module."""
