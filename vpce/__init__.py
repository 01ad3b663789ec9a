"""Convergence of AWS interface VPC endpoints toward a desired state."""
