"""CertStore: lifecycle management for generated certificate artifacts."""

__version__ = "1.0.0"
