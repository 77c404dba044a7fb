"""Step runners for Terraform and Azure Resource Manager deployments."""

__version__ = "0.1.0"