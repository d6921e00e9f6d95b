"""
Error taxonomy for the trustee connector.

Every service raises one of these errors. The application registers a
single exception handler (see `app.main`) that renders them as
``{"error": "<message>"}`` with the status code carried by the class.
"""


class TrusteeError(Exception):
    """Base class for all domain errors raised by the connector services."""

    status_code = 500


class InvalidRequest(TrusteeError):
    """A required field is missing or invalid."""

    status_code = 400


class IntegrityViolation(TrusteeError):
    """A trusted participant list does not match its fingerprint."""

    status_code = 400


class NotFound(TrusteeError):
    """Unknown asset, exchange entry or routing key."""

    status_code = 404


class UnknownTransform(NotFound):
    """No transform is registered under the requested id."""


class ProtocolError(TrusteeError):
    """A counterpart answered with a body that cannot be interpreted."""

    status_code = 502


class TransformFailed(TrusteeError):
    """A transform raised while processing asset bytes."""

    status_code = 500


class UpstreamUnavailable(TrusteeError):
    """A provider, consumer or trustee could not be reached."""

    status_code = 502


class HashingUnavailable(TrusteeError):
    """The configured fingerprint algorithm cannot be used."""

    status_code = 500
