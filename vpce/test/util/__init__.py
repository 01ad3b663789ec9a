"""Tests for :mod:`vpce.util`."""
