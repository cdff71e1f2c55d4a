"""
Authentication-related structures.

A minimally sufficient data structure to bring the credentials together
in a structured and type-annotated way, as retrieved by the login routines
(see :mod:`cmbump.clients.piggybacking`).

The "rudimentary" is defined as the information passed to the HTTP protocol
and TCP/SSL connection only, i.e. everything usable in a generic HTTP client:

* TCP server host & port.
* SSL verification/ignorance flag.
* SSL certificate authority.
* SSL client certificate and its private key.
* HTTP ``Authorization: Basic username:password``.
* HTTP ``Authorization: Bearer token`` (or other schemes).
* URL's default namespace for the cases when this is implied.
"""
import dataclasses
from typing import Optional


class LoginError(Exception):
    """ Raised when the operator cannot login to the API. """


@dataclasses.dataclass(frozen=True)
class ConnectionInfo:
    """
    A single endpoint with specific credentials and connection flags to use.
    """
    server: str  # e.g. "https://localhost:443"
    ca_path: Optional[str] = None
    ca_data: Optional[str] = None
    insecure: Optional[bool] = None
    username: Optional[str] = None
    password: Optional[str] = None
    scheme: Optional[str] = None  # RFC-7235/5.1: e.g. Bearer, Basic, Digest, etc.
    token: Optional[str] = None
    certificate_path: Optional[str] = None
    certificate_data: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_data: Optional[str] = None
    default_namespace: Optional[str] = None
