"""Tests for :mod:`vpce.tap`."""
