"""
Certificate lifecycle helpers.

A certificate is obtained in three steps against the GDS Directory:

1. StartNewKeyPairRequest or StartSigningRequest returns a request id
2. FinishRequest is polled with that id; an empty certificate means the
   request is still pending
3. a non-empty certificate completes the request, together with the private
   key (key pair requests only) and the issuer chain

This module marshals request arguments into typed variants and interprets
the ordered output arguments. Polling policy belongs to the caller.
"""

from typing import Any, Optional

from asyncua import ua

from .enums import ErrorCode
from .exceptions import RemoteInvocationFault
from .models import CertificateBundle, KeyPairRequest, SigningRequest, TrustListHandle


def _node_id(value: Optional[ua.NodeId]) -> ua.Variant:
    return ua.Variant(value if value is not None else ua.NodeId(), ua.VariantType.NodeId)


def _string(value: Optional[str]) -> ua.Variant:
    return ua.Variant(value, ua.VariantType.String)


def _is_null(node_id: Any) -> bool:
    return node_id is None or (isinstance(node_id, ua.NodeId) and node_id.is_null())


def _missing_output(method: str) -> RemoteInvocationFault:
    return RemoteInvocationFault(
        code=ErrorCode.MISSING_OUTPUT.value,
        message=f"{method} returned no result",
        details={"method": method},
    )


def key_pair_arguments(request: KeyPairRequest) -> list[ua.Variant]:
    """Input arguments of StartNewKeyPairRequest."""
    return [
        _node_id(request.application_id),
        _node_id(request.certificate_group_id),
        _node_id(request.certificate_type_id),
        _string(request.subject_name),
        ua.Variant(list(request.domain_names), ua.VariantType.String),
        _string(request.private_key_format.value),
        _string(request.private_key_password),
    ]


def signing_arguments(request: SigningRequest) -> list[ua.Variant]:
    """Input arguments of StartSigningRequest."""
    return [
        _node_id(request.application_id),
        _node_id(request.certificate_group_id),
        _node_id(request.certificate_type_id),
        ua.Variant(request.certificate_request, ua.VariantType.ByteString),
    ]


def finish_arguments(application_id: ua.NodeId, request_id: ua.NodeId) -> list[ua.Variant]:
    return [_node_id(application_id), _node_id(request_id)]


def parse_node_id(outputs: list[Any], method: str) -> ua.NodeId:
    """
    Extract the node id returned by a start or register call.

    Raises:
        RemoteInvocationFault: The server returned no (or a null) node id
    """
    if not outputs or _is_null(outputs[0]):
        raise _missing_output(method)
    return outputs[0]


def parse_finish_result(outputs: list[Any]) -> CertificateBundle:
    """
    Interpret FinishRequest outputs (certificate, privateKey, issuerCertificates).

    A pending request yields an empty bundle: no private key and no issuer
    certificates, whatever else the server sent.
    """
    certificate = outputs[0] if len(outputs) > 0 else None
    if not certificate:
        return CertificateBundle()

    private_key = outputs[1] if len(outputs) > 1 else None
    issuers = outputs[2] if len(outputs) > 2 else None

    return CertificateBundle(
        certificate=bytes(certificate),
        private_key=bytes(private_key) if private_key else None,
        issuer_certificates=[bytes(issuer) for issuer in issuers] if issuers is not None else None,
    )


def parse_certificate_groups(outputs: list[Any]) -> list[ua.NodeId]:
    if not outputs or outputs[0] is None:
        return []
    return list(outputs[0])


def parse_trust_list_handle(outputs: list[Any]) -> TrustListHandle:
    if not outputs or _is_null(outputs[0]):
        raise _missing_output("GetTrustList")
    return TrustListHandle(node_id=outputs[0])
