"""Tests for :mod:`vpce.convergence`."""
