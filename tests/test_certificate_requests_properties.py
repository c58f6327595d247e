"""
Property-based tests for the certificate request workflow.

Covers argument marshalling, interpretation of FinishRequest outputs and the
start / finish calls through the client.
"""

import pytest
from asyncua import ua
from hypothesis import given, settings
from hypothesis import strategies as st

from gds_client.certificate_requests import (
    finish_arguments,
    key_pair_arguments,
    parse_certificate_groups,
    parse_finish_result,
    parse_node_id,
    signing_arguments,
)
from gds_client.client import GlobalDiscoveryServerClient
from gds_client.config import ClientConfig, CredentialsConfig
from gds_client.enums import ErrorCode, PrivateKeyFormat
from gds_client.exceptions import PrivilegedOperationUnavailable, RemoteInvocationFault
from gds_client.models import KeyPairRequest, SigningRequest
from gds_client.node_ids import CertificateTypes, DirectoryIds

from fakes import SessionRecorder, bad_status, run_async

APPLICATION_ID = ua.NodeId(1001, 2)
REQUEST_ID = ua.NodeId(7001, 2)
GROUP_ID = ua.NodeId(615, 2)
ADMIN_CONFIG = ClientConfig(credentials=CredentialsConfig(admin_username="admin", admin_password="pw"))

der_strategy = st.binary(min_size=1, max_size=128)


class TestFinishResultProperty:
    """
    **Feature: gds-client, Property 10: A pending request carries no key material**
    """

    @given(
        private_key=st.one_of(st.none(), st.binary(max_size=64)),
        issuers=st.one_of(st.none(), st.lists(der_strategy, max_size=4)),
        certificate=st.sampled_from([None, b""]),
    )
    @settings(max_examples=100)
    def test_pending_request_yields_empty_bundle(self, private_key, issuers, certificate) -> None:
        bundle = parse_finish_result([certificate, private_key, issuers])

        assert not bundle.is_complete
        assert bundle.private_key is None
        assert bundle.issuer_certificates is None

    @given(
        certificate=der_strategy,
        private_key=der_strategy,
        issuers=st.lists(der_strategy, max_size=6),
    )
    @settings(max_examples=100)
    def test_issued_certificate_keeps_issuer_order(self, certificate, private_key, issuers) -> None:
        bundle = parse_finish_result([certificate, private_key, issuers])

        assert bundle.is_complete
        assert bundle.certificate == certificate
        assert bundle.private_key == private_key
        assert bundle.issuer_certificates == issuers

    def test_signing_request_has_no_private_key(self) -> None:
        bundle = parse_finish_result([b"cert", b"", [b"ca"]])
        assert bundle.private_key is None
        assert bundle.issuer_certificates == [b"ca"]

    def test_absent_issuer_list(self) -> None:
        bundle = parse_finish_result([b"cert"])
        assert bundle.issuer_certificates is None
        assert bundle.private_key is None

    def test_no_outputs_is_pending(self) -> None:
        assert not parse_finish_result([]).is_complete


class TestArgumentMarshallingProperty:
    """
    **Feature: gds-client, Property 11: Request arguments keep their order and types**
    """

    @given(
        subject=st.text(max_size=40),
        domains=st.lists(st.text(min_size=1, max_size=20), max_size=4),
        key_format=st.sampled_from(list(PrivateKeyFormat)),
        password=st.one_of(st.none(), st.text(max_size=12)),
    )
    @settings(max_examples=50)
    def test_key_pair_arguments(self, subject, domains, key_format, password) -> None:
        request = KeyPairRequest(
            application_id=APPLICATION_ID,
            certificate_group_id=GROUP_ID,
            certificate_type_id=CertificateTypes.APPLICATION_CERTIFICATE,
            subject_name=subject,
            domain_names=domains,
            private_key_format=key_format,
            private_key_password=password,
        )

        args = key_pair_arguments(request)

        assert [a.VariantType for a in args] == [
            ua.VariantType.NodeId,
            ua.VariantType.NodeId,
            ua.VariantType.NodeId,
            ua.VariantType.String,
            ua.VariantType.String,
            ua.VariantType.String,
            ua.VariantType.String,
        ]
        assert args[0].Value == APPLICATION_ID
        assert args[3].Value == subject
        assert args[4].Value == domains
        assert args[5].Value == key_format.value
        assert args[6].Value == password

    def test_missing_group_and_type_become_null_node_ids(self) -> None:
        request = SigningRequest(
            application_id=APPLICATION_ID,
            certificate_group_id=None,
            certificate_type_id=None,
            certificate_request=b"\x30\x82",
        )

        args = signing_arguments(request)

        assert args[1].Value.is_null()
        assert args[2].Value.is_null()
        assert args[3].VariantType == ua.VariantType.ByteString
        assert args[3].Value == b"\x30\x82"

    def test_finish_arguments(self) -> None:
        args = finish_arguments(APPLICATION_ID, REQUEST_ID)
        assert [a.Value for a in args] == [APPLICATION_ID, REQUEST_ID]


class TestRequestIdParsing:

    @pytest.mark.parametrize("outputs", [[], [None], [ua.NodeId()]])
    def test_missing_request_id_is_a_fault(self, outputs) -> None:
        with pytest.raises(RemoteInvocationFault) as exc_info:
            parse_node_id(outputs, "StartSigningRequest")

        assert exc_info.value.code == ErrorCode.MISSING_OUTPUT.value
        assert exc_info.value.status_code is None
        assert exc_info.value.details == {"method": "StartSigningRequest"}

    def test_request_id_returned(self) -> None:
        assert parse_node_id([REQUEST_ID], "StartNewKeyPairRequest") == REQUEST_ID

    def test_certificate_groups(self) -> None:
        assert parse_certificate_groups([[GROUP_ID]]) == [GROUP_ID]
        assert parse_certificate_groups([None]) == []
        assert parse_certificate_groups([]) == []


class TestClientCertificateWorkflow:
    """Start, poll and finish a request through the client."""

    def _client(self, handlers: dict, config: ClientConfig = ADMIN_CONFIG):
        recorder = SessionRecorder(handlers)
        return GlobalDiscoveryServerClient(config, session_factory=recorder), recorder

    def test_key_pair_request_then_finish(self) -> None:
        responses = iter([
            [b"", b"", None],
            [b"cert", b"key", [b"intermediate", b"root"]],
        ])
        client, recorder = self._client({
            DirectoryIds.START_NEW_KEY_PAIR_REQUEST: lambda *args: [REQUEST_ID],
            DirectoryIds.FINISH_REQUEST: lambda app, req: next(responses),
        })

        async def scenario():
            request_id = await client.start_new_key_pair_request(
                APPLICATION_ID, None, None, "CN=Test", ["host.example"],
            )
            pending = await client.finish_request(APPLICATION_ID, request_id)
            issued = await client.finish_request(APPLICATION_ID, request_id)
            return request_id, pending, issued

        request_id, pending, issued = run_async(scenario())

        assert request_id == REQUEST_ID
        assert not pending.is_complete
        assert issued.certificate == b"cert"
        assert issued.private_key == b"key"
        assert issued.issuer_certificates == [b"intermediate", b"root"]

        start_call = recorder.last.calls_to(DirectoryIds.START_NEW_KEY_PAIR_REQUEST)[0]
        assert start_call.args[3] == "CN=Test"
        assert start_call.args[4] == ["host.example"]
        assert start_call.args[5] == "PEM"
        assert start_call.identity.username == "admin"

    def test_unknown_application_fault_passes_through(self) -> None:
        fault = bad_status("BadNotFound")

        def reject(*args):
            raise fault

        client, recorder = self._client({DirectoryIds.START_SIGNING_REQUEST: reject})

        with pytest.raises(RemoteInvocationFault) as exc_info:
            run_async(client.start_signing_request(ua.NodeId(999, 2), GROUP_ID, None, b"csr"))

        assert exc_info.value is fault
        assert exc_info.value.status_code == ua.StatusCodes.BadNotFound
        # the failed call still reverts the elevation
        assert recorder.last.identity.is_anonymous

    def test_privileged_call_without_credentials(self) -> None:
        client, recorder = self._client(
            {DirectoryIds.FINISH_REQUEST: lambda app, req: [b"cert"]},
            config=ClientConfig(),
        )

        with pytest.raises(PrivilegedOperationUnavailable):
            run_async(client.finish_request(APPLICATION_ID, REQUEST_ID))

        assert recorder.last.calls_to(DirectoryIds.FINISH_REQUEST) == []

    def test_certificate_groups_via_client(self) -> None:
        client, recorder = self._client({
            DirectoryIds.GET_CERTIFICATE_GROUPS: lambda app: [[GROUP_ID]],
        })

        assert run_async(client.get_certificate_groups(APPLICATION_ID)) == [GROUP_ID]
        assert recorder.last.calls_to(DirectoryIds.GET_CERTIFICATE_GROUPS)[0].args == [APPLICATION_ID]
