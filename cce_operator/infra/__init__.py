"""HTTP plumbing shared by the cloud clients."""

from .http import Auth, HttpClient, HttpError, is_transport_error

__all__ = ["Auth", "HttpClient", "HttpError", "is_transport_error"]
