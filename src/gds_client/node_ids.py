"""Node ids of the GDS Directory and of the standard FileType methods.

GDS ids live in the GDS namespace, whose index differs per server, so they
are kept as (namespace URI, numeric id) pairs and resolved by the session.
"""

from __future__ import annotations

from dataclasses import dataclass

from asyncua import ua

from .config import GDS_NAMESPACE_URI


@dataclass(frozen=True)
class NodeReference:
    """A numeric node id qualified by namespace URI instead of index."""

    namespace_uri: str
    identifier: int

    def to_node_id(self, namespace_index: int) -> ua.NodeId:
        return ua.NodeId(self.identifier, namespace_index)

    def expanded(self) -> str:
        """ExpandedNodeId string form, e.g. nsu=http://...;i=141"""
        return f"nsu={self.namespace_uri};i={self.identifier}"


def _gds(identifier: int) -> NodeReference:
    return NodeReference(GDS_NAMESPACE_URI, identifier)


class DirectoryIds:
    """GDS Directory object and its methods."""

    DIRECTORY = _gds(141)
    FIND_APPLICATIONS = _gds(143)
    REGISTER_APPLICATION = _gds(146)
    UNREGISTER_APPLICATION = _gds(149)
    QUERY_SERVERS = _gds(151)
    START_NEW_KEY_PAIR_REQUEST = _gds(154)
    START_SIGNING_REQUEST = _gds(157)
    FINISH_REQUEST = _gds(163)
    GET_TRUST_LIST = _gds(204)
    GET_APPLICATION = _gds(216)
    GET_CERTIFICATE_GROUPS = _gds(508)


class FileMethodIds:
    """FileType methods (namespace 0)."""

    OPEN = ua.NodeId(ua.ObjectIds.FileType_Open)
    CLOSE = ua.NodeId(ua.ObjectIds.FileType_Close)
    READ = ua.NodeId(ua.ObjectIds.FileType_Read)


class CertificateTypes:
    """OPC UA certificate type ids (namespace 0)."""

    APPLICATION_CERTIFICATE = ua.NodeId(12557)
    HTTPS_CERTIFICATE = ua.NodeId(12558)
    RSA_MIN_APPLICATION_CERTIFICATE = ua.NodeId(12559)
    RSA_SHA256_APPLICATION_CERTIFICATE = ua.NodeId(12560)
