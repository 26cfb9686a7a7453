"""On-disk encoding of invoices.

A record is the concatenation of:

 - `memo`: varint length followed by the memo bytes
 - `receipt`: varint length followed by the receipt bytes
 - `creation_date`: varint length followed by a binary timestamp
 - `payment_preimage`: 32 bytes
 - `value`: 8 byte big-endian two's complement amount
 - `settled`: 1 byte, 1 means settled

The varint is the compactsize encoding from `pyln.proto.primitives`.
"""
from .errors import MalformedRecord
from .primitives import (
    ContractTerm, Invoice, Preimage, MAX_MEMO_SIZE, MAX_RECEIPT_SIZE
)
from datetime import datetime, timedelta, timezone
from io import BufferedIOBase, BytesIO
from pyln.proto.message.fundamental_types import IntegerType, FundamentalHexType
from pyln.proto.primitives import varint_decode, varint_encode
from typing import Any, Optional

import struct


# Cap on the serialized creation date, far more than the 16 bytes we ever
# write.
MAX_TIMESTAMP_SIZE = 300

# The timestamp layout follows the version 1 and 2 binary time encoding:
# version byte, seconds since 0001-01-01 UTC, nanoseconds, zone offset in
# minutes (-1 for UTC) and, for version 2 only, an extra seconds offset.
TIMESTAMP_V1 = 1
TIMESTAMP_V2 = 2
TIMESTAMP_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)
UTC_OFFSET = -1

preimage_type = FundamentalHexType('preimage', 32)
s64 = IntegerType('s64', 8, '>q')
settled_type = IntegerType('byte', 1, 'B')


def read_field(field, io_in: BufferedIOBase) -> Any:
    """Read a fixed-size field, treating EOF as a truncated record."""
    try:
        val = field.read(io_in, {})
    except ValueError as e:
        raise MalformedRecord("{}: {}".format(field.name, e)) from e
    if val is None:
        raise MalformedRecord("{}: not enough bytes".format(field.name))
    return val


def write_var_bytes(w, b: bytes) -> None:
    varint_encode(len(b), w)
    w.write(b)


def read_var_bytes(r: BufferedIOBase, maxlen: int, name: str) -> bytes:
    start = r.tell()
    try:
        length = varint_decode(r)
    except struct.error as e:
        raise MalformedRecord("{}: truncated length prefix".format(name)) from e
    if length is None:
        raise MalformedRecord("{}: missing length prefix".format(name))

    # Only the shortest encoding of a length is accepted.
    canonical = BytesIO()
    varint_encode(length, canonical)
    if len(canonical.getvalue()) != r.tell() - start:
        raise MalformedRecord(
            "{}: non-canonical length prefix for {}".format(name, length)
        )

    if length > maxlen:
        raise MalformedRecord(
            "{} is larger than the max allowed size [count={}, max={}]".format(
                name, length, maxlen
            )
        )

    b = r.read(length)
    if len(b) != length:
        raise MalformedRecord(
            "{}: expected {} bytes, {} remaining".format(name, length, len(b))
        )
    return b


def marshal_time(t: datetime) -> bytes:
    delta = t - TIMESTAMP_EPOCH
    sec = delta.days * 86400 + delta.seconds
    nsec = delta.microseconds * 1000

    if t.tzinfo is timezone.utc:
        offset = UTC_OFFSET
    else:
        offset, rem = divmod(t.utcoffset(), timedelta(minutes=1))
        if rem:
            raise ValueError("zone offset {} has fractional minute".format(t.utcoffset()))

    return struct.pack('>Bqih', TIMESTAMP_V1, sec, nsec, offset)


def unmarshal_time(b: bytes) -> datetime:
    if len(b) == 0:
        raise MalformedRecord("creation_date: no data")

    version = b[0]
    if version == TIMESTAMP_V1 and len(b) == 15:
        sec, nsec, offset = struct.unpack('>qih', b[1:])
        offset_secs = offset * 60
    elif version == TIMESTAMP_V2 and len(b) == 16:
        sec, nsec, offset, extra = struct.unpack('>qihb', b[1:])
        offset_secs = offset * 60 + extra
    elif version in (TIMESTAMP_V1, TIMESTAMP_V2):
        raise MalformedRecord("creation_date: invalid length {}".format(len(b)))
    else:
        raise MalformedRecord("creation_date: unsupported version {}".format(version))

    if not 0 <= nsec < 10**9:
        raise MalformedRecord("creation_date: invalid nanoseconds {}".format(nsec))

    if offset_secs == UTC_OFFSET * 60:
        tz = timezone.utc
    else:
        try:
            tz = timezone(timedelta(seconds=offset_secs))
        except ValueError as e:
            raise MalformedRecord("creation_date: {}".format(e)) from e

    try:
        t = TIMESTAMP_EPOCH + timedelta(seconds=sec, microseconds=nsec // 1000)
        return t.astimezone(tz)
    except OverflowError as e:
        raise MalformedRecord("creation_date: {} out of range".format(sec)) from e


def serialize_invoice(w, i: Invoice) -> None:
    write_var_bytes(w, i.memo)
    write_var_bytes(w, i.receipt)
    write_var_bytes(w, marshal_time(i.creation_date))

    preimage_type.write(w, i.terms.payment_preimage.to_bytes(), {})
    s64.write(w, i.terms.value, {})
    settled_type.write(w, 1 if i.terms.settled else 0, {})


def deserialize_invoice(r: BufferedIOBase) -> Invoice:
    memo = read_var_bytes(r, MAX_MEMO_SIZE, "memo")
    receipt = read_var_bytes(r, MAX_RECEIPT_SIZE, "receipt")
    creation_date = unmarshal_time(
        read_var_bytes(r, MAX_TIMESTAMP_SIZE, "creation_date")
    )

    preimage = read_field(preimage_type, r)
    value = read_field(s64, r)
    settled = read_field(settled_type, r) == 1

    return Invoice(
        memo=memo,
        receipt=receipt,
        creation_date=creation_date,
        terms=ContractTerm(Preimage(preimage), value, settled),
    )


def encode_invoice(i: Invoice) -> bytes:
    buf = BytesIO()
    serialize_invoice(buf, i)
    return buf.getvalue()


def decode_invoice(data: Optional[bytes]) -> Invoice:
    if data is None:
        raise MalformedRecord("no invoice record")
    return deserialize_invoice(BytesIO(data))
