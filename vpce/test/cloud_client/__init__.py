"""Tests for :mod:`vpce.cloud_client`."""
