"""Canonical trust bundle reading and validation."""

import base64
import binascii
import logging
import re
import ssl
from dataclasses import dataclass
from typing import Optional

from . import names
from .context import ReconcileContext
from .exceptions import BundleValidationError, NotFoundError
from .models import CANONICAL_BUNDLE_REF, ConfigMapResource, ResourceRef
from .store import ResourceStore

logger = logging.getLogger(__name__)

CERTIFICATE_PEM_BLOCK = "CERTIFICATE"

_PEM_BLOCK_RE = re.compile(
    r"-----BEGIN (?P<type>[^-\r\n]+)-----\r?\n"
    r"(?P<body>.*?)"
    r"-----END (?P=type)-----",
    re.DOTALL,
)


@dataclass(frozen=True)
class TrustBundle:
    """Validated canonical bundle."""

    ref: ResourceRef
    data: str
    certificate_count: int


def parse_certificates(data: str) -> int:
    """
    Check that ``data`` is a sequence of PEM encoded X.509 certificates.

    Text before a PEM block is ignored, as are trailing blank lines. Every
    block must be a CERTIFICATE whose DER payload parses.

    Args:
        data: PEM bundle text

    Returns:
        Number of certificates found

    Raises:
        BundleValidationError: If any block is malformed
    """
    count = 0
    pos = 0
    while True:
        match = _PEM_BLOCK_RE.search(data, pos)
        if match is None:
            break
        if match.group("type") != CERTIFICATE_PEM_BLOCK:
            raise BundleValidationError(
                f"invalid certificate PEM, must be of type {CERTIFICATE_PEM_BLOCK!r}"
            )
        try:
            der = base64.b64decode("".join(match.group("body").split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise BundleValidationError(f"failed to parse certificate PEM: {e}") from e
        _load_der_certificate(der)
        count += 1
        pos = match.end()

    if data[pos:].strip():
        raise BundleValidationError("failed to parse certificate PEM")
    if count == 0:
        raise BundleValidationError("no certificates found in bundle")
    return count


def _load_der_certificate(der: bytes) -> None:
    # OpenSSL refuses anything that is not a well-formed X.509 structure.
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    try:
        context.load_verify_locations(cadata=der)
    except (ssl.SSLError, ValueError) as e:
        raise BundleValidationError(f"failed to parse certificate: {e}") from e


def validate_trust_bundle(configmap: ConfigMapResource) -> TrustBundle:
    """
    Validate the trust bundle ConfigMap.

    Raises:
        BundleValidationError: If the key is missing, empty or not a certificate bundle
    """
    key = names.TRUSTED_CA_BUNDLE_CONFIGMAP_KEY
    resource = str(configmap.ref)
    if key not in configmap.data:
        raise BundleValidationError(
            f"ConfigMap {configmap.name!r} is missing {key!r}", resource=resource
        )
    data = configmap.data[key]
    if not data:
        raise BundleValidationError(
            f"data key {key!r} is empty from ConfigMap {configmap.name!r}",
            resource=resource,
        )
    try:
        count = parse_certificates(data)
    except BundleValidationError as e:
        raise BundleValidationError(str(e), resource=resource) from e
    return TrustBundle(ref=configmap.ref, data=data, certificate_count=count)


class SourceBundleReader:
    """Fetches and validates the canonical trust bundle."""

    def __init__(self, store: ResourceStore, ref: ResourceRef = CANONICAL_BUNDLE_REF):
        self.store = store
        self.ref = ref

    def read(self, ctx: ReconcileContext) -> Optional[TrustBundle]:
        """
        Read the canonical bundle.

        Args:
            ctx: Pass context

        Returns:
            The validated bundle, or None when the ConfigMap does not exist yet

        Raises:
            BundleValidationError: If the content is malformed
            StoreError: If the read fails for another reason
        """
        try:
            configmap = self.store.get(self.ref, ctx)
        except NotFoundError:
            logger.info(f"ConfigMap '{self.ref}' not found; reconciliation will be skipped")
            return None

        bundle = validate_trust_bundle(configmap)
        logger.debug(f"Validated {bundle.certificate_count} certificates in {self.ref}")
        return bundle
