"""docgate: a protocol-agnostic data-access gateway.

Exposes find, findOne, findById, count, create, update, patch and delete
against document collections over REST and JSON-RPC.
"""

__version__ = "0.1.0"
