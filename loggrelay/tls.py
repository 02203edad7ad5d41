"""TLS contexts for connections between internal services."""

from __future__ import annotations

import ssl
from typing import Iterable, Optional

_CIPHER_NAMES = {
    "TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256": "ECDHE-RSA-AES128-GCM-SHA256",
    "TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384": "ECDHE-RSA-AES256-GCM-SHA384",
}
_DEFAULT_CIPHERS = ":".join(_CIPHER_NAMES.values())


class _ClientContext(ssl.SSLContext):
    """A client context that checks the peer against a fixed server name."""

    server_name = ""

    def wrap_socket(
        self,
        sock,
        server_side=False,
        do_handshake_on_connect=True,
        suppress_ragged_eofs=True,
        server_hostname=None,
        session=None,
    ):
        return super().wrap_socket(
            sock,
            server_side=server_side,
            do_handshake_on_connect=do_handshake_on_connect,
            suppress_ragged_eofs=suppress_ragged_eofs,
            server_hostname=server_hostname or self.server_name,
            session=session,
        )

    def wrap_bio(
        self, incoming, outgoing, server_side=False, server_hostname=None, session=None
    ):
        return super().wrap_bio(
            incoming,
            outgoing,
            server_side=server_side,
            server_hostname=server_hostname or self.server_name,
            session=session,
        )


def _apply_defaults(context: ssl.SSLContext, ciphers: str) -> None:
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.set_ciphers(ciphers)


def _select_ciphers(cipher_suites: Iterable[str]) -> str:
    names = [_CIPHER_NAMES[c] for c in cipher_suites if c in _CIPHER_NAMES]
    if not names:
        raise ValueError("no valid ciphers provided for TLS configuration")
    return ":".join(names)


def client_context(
    cert_file: str, key_file: str, ca_file: str, server_name: str
) -> ssl.SSLContext:
    """Return a mutual-TLS client context that expects the peer to be *server_name*.

    Raises ssl.SSLError or OSError if a file cannot be loaded.
    """
    context = _ClientContext(ssl.PROTOCOL_TLS_CLIENT)
    _apply_defaults(context, _DEFAULT_CIPHERS)
    context.load_cert_chain(cert_file, key_file)
    context.load_verify_locations(cafile=ca_file)
    context.server_name = server_name
    return context


def server_context(
    cert_file: str,
    key_file: str,
    ca_file: str,
    cipher_suites: Optional[Iterable[str]] = None,
) -> ssl.SSLContext:
    """Return a server context that requires client certificates signed by *ca_file*.

    *cipher_suites* restricts the TLS 1.2 suites by their standard names;
    unknown names are ignored, and ValueError is raised if none is left.
    """
    ciphers = _DEFAULT_CIPHERS if cipher_suites is None else _select_ciphers(cipher_suites)
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    _apply_defaults(context, ciphers)
    context.verify_mode = ssl.CERT_REQUIRED
    context.load_cert_chain(cert_file, key_file)
    context.load_verify_locations(cafile=ca_file)
    return context