"""
Trust list transfer over the OPC UA FileType methods.

Reading a trust list is a short conversation with the file object returned
by GetTrustList:

    Open(mode=Read) -> fileHandle
    Read(fileHandle, 4096) ... until a read returns fewer bytes than asked
    Close(fileHandle)

Close is attempted whenever the session is connected, whatever happened in
the read loop. A failing close never hides an earlier read error; after a
clean read it is reported. The collected bytes are then decoded as a
TrustListDataType.
"""

from typing import Any, Optional

from asyncua import ua
from asyncua.common.utils import Buffer
from asyncua.ua.ua_binary import struct_from_binary

from .audit_logger import AuditLogger
from .enums import ErrorCode, FileOpenMode, LogLevel
from .exceptions import RemoteInvocationFault, TransferDecodeError
from .models import TrustList, TrustListHandle
from .node_ids import FileMethodIds
from .session import Session

READ_CHUNK_SIZE = 4096


def decode_trust_list(data: bytes) -> TrustList:
    """
    Decode binary-encoded TrustListDataType bytes.

    Raises:
        TransferDecodeError: The bytes are not a valid trust list
    """
    try:
        decoded = struct_from_binary(ua.TrustListDataType, Buffer(data))
    except Exception as e:
        raise TransferDecodeError(
            code=ErrorCode.DECODE_FAILED.value,
            message=f"Could not decode trust list ({len(data)} bytes): {e}",
            details={"size": len(data)},
        ) from e
    return TrustList.from_ua(decoded)


class TrustListTransfer:
    """Reads a remote trust list file in fixed-size chunks."""

    COMPONENT = "TrustListTransfer"

    def __init__(
        self,
        session: Session,
        chunk_size: int = READ_CHUNK_SIZE,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive: {chunk_size}")
        self._session = session
        self._chunk_size = chunk_size
        self._logger = logger

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    async def read(self, handle: TrustListHandle) -> TrustList:
        """Read and decode the trust list behind ``handle``."""
        data = await self.read_bytes(handle)
        return decode_trust_list(data)

    async def read_bytes(self, handle: TrustListHandle) -> bytes:
        """
        Run the open/read/close conversation and return the raw file bytes.

        Raises:
            RemoteInvocationFault: Open, Read or (after a clean read) Close failed
            GDSConnectionError: The session was lost
        """
        node_id = handle.node_id
        outputs = await self._session.call_method(
            node_id,
            FileMethodIds.OPEN,
            ua.Variant(int(FileOpenMode.READ), ua.VariantType.Byte),
        )
        if not outputs or outputs[0] is None:
            raise RemoteInvocationFault(
                code=ErrorCode.MISSING_OUTPUT.value,
                message="Open returned no file handle",
                details={"node_id": str(node_id)},
            )
        file_handle = outputs[0]

        buffer = bytearray()
        reads = 0
        completed = False
        try:
            while True:
                chunk = await self._read_chunk(node_id, file_handle)
                reads += 1
                buffer.extend(chunk)
                if len(chunk) != self._chunk_size:
                    break
            completed = True
        finally:
            if self._session.is_connected:
                try:
                    await self._session.call_method(
                        node_id,
                        FileMethodIds.CLOSE,
                        ua.Variant(file_handle, ua.VariantType.UInt32),
                    )
                except Exception as e:
                    if completed:
                        raise
                    self._log_error("Close failed after read error", e)

        self._log(LogLevel.DEBUG, "Read trust list file", {"bytes": len(buffer), "reads": reads})
        return bytes(buffer)

    async def _read_chunk(self, node_id: ua.NodeId, file_handle: Any) -> bytes:
        outputs = await self._session.call_method(
            node_id,
            FileMethodIds.READ,
            ua.Variant(file_handle, ua.VariantType.UInt32),
            ua.Variant(self._chunk_size, ua.VariantType.Int32),
        )
        if not outputs or outputs[0] is None:
            return b""
        return bytes(outputs[0])

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)

    def _log_error(self, message: str, error: Exception) -> None:
        if self._logger:
            self._logger.log_error(self.COMPONENT, message, error)
