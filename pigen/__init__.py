"""Client that deploys a pigen core service and drives its plugins and CI/CD pipelines."""

__version__ = "0.1.0"