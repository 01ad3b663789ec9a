"""Convergence of a VPC endpoint and its attachments."""
