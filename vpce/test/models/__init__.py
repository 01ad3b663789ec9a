"""Tests for :mod:`vpce.models`."""
