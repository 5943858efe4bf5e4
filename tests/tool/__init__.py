"""Tests for the flux_fleet.tool module."""
