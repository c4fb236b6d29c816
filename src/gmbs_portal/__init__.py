"""GMBS Portal: artisan portal tokens, uploads and pull-based CRM sync."""

from gmbs_portal.keygen.generator import generate_api_credentials, generate_token, token_hash

__all__ = [
    "generate_api_credentials",
    "generate_token",
    "token_hash",
]
__version__ = "0.1.0"
