"""
Service layer: BoundaryService ABC and ServiceRegistry.

A service turns a raw JSON payload into a validated BoundaryConfig (or
another request object), runs the pipeline on it and mounts its own
endpoints on the API blueprint. The registry holds the services in
registration order so the app can list them and mount their routes.

Classes:
    BoundaryService - Abstract base class for all services
    ServiceRegistry - Ordered container of registered services

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

from abc import ABC, abstractmethod


class BoundaryService(ABC):
    """
    Abstract base class for a service.

    Class Attributes
    ----------------
    id : str
        Unique service identifier (e.g. "estimation").
    name : str
        Human-readable display name.
    description : str
        One-liner for listings.
    endpoints : tuple of str
        "METHOD /path" of every route the service mounts, relative to /api.
    """

    id = ""
    name = ""
    description = ""
    endpoints = ()

    @abstractmethod
    def validate(self, payload):
        """
        Turn a raw request payload into a run configuration.

        Raises
        ------
        ValueError
            If the payload is invalid (ConfigurationError included).
        """

    @abstractmethod
    def compute(self, config, verbose=False):
        """
        Run the pipeline on a validated configuration.

        Returns
        -------
        dict
            JSON-serializable result.
        """

    @abstractmethod
    def register_routes(self, blueprint):
        """Mount the service's endpoints onto the API blueprint."""

    def metadata(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "endpoints": list(self.endpoints),
        }


class ServiceRegistry:
    """
    Registered BoundaryService instances, in registration order.
    """

    def __init__(self):
        self._services = {}

    def register(self, service):
        """
        Register a service instance.

        Raises
        ------
        ValueError
            If a service with the same id is already registered.
        """
        if service.id in self._services:
            raise ValueError(
                "Service '{}' is already registered".format(service.id)
            )
        self._services[service.id] = service

    def __iter__(self):
        return iter(self._services.values())

    def __len__(self):
        return len(self._services)

    def list_all(self):
        """Metadata for all registered services."""
        return [s.metadata() for s in self]
