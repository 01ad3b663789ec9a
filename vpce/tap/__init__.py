"""Twisted application plugins."""
