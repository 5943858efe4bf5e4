"""Tests for the flux_fleet.task module."""
