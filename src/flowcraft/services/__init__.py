"""Domain services built on the API client and the state manager."""

from flowcraft.services.api_keys import APIKeyService, MemorySecretStore, SecretStore
from flowcraft.services.diagrams import DiagramService
from flowcraft.services.export import ExportFormat, ExportService, safe_file_name
from flowcraft.services.usage import UsageService

__all__ = [
    "APIKeyService",
    "DiagramService",
    "ExportFormat",
    "ExportService",
    "MemorySecretStore",
    "SecretStore",
    "UsageService",
    "safe_file_name",
]
