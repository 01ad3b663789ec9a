"""Tests for vpce."""
