"""authdeploy - deploy Authentik and ArgoCD onto AWS EKS."""

__version__ = "0.1.0"
