"""Tests for the flux_fleet.client module."""
