"""Tests for :mod:`vpce.log`."""
