"""Wire-format encoding for legacy (non-witness) UTXO transactions and scripts."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import MalformedInputError
from .types import Transaction, TxIn, TxOut


# --- Opcodes ---

OP_0 = 0x00
OP_FALSE = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_1 = 0x51
OP_TRUE = 0x51
OP_16 = 0x60
OP_IF = 0x63
OP_ELSE = 0x67
OP_ENDIF = 0x68
OP_RETURN = 0x6A
OP_DROP = 0x75
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC
OP_CHECKMULTISIG = 0xAE
OP_CHECKLOCKTIMEVERIFY = 0xB1


@dataclass
class Writer:
    buf: bytearray

    def write_u8(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(1, "little", signed=False))

    def write_u16(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(2, "little", signed=False))

    def write_u32(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(4, "little", signed=False))

    def write_u64(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(8, "little", signed=False))

    def write_varint(self, v: int) -> None:
        self.buf.extend(encode_varint(v))

    def write_bytes(self, b: bytes) -> None:
        self.buf.extend(b)

    def write_var_bytes(self, b: bytes) -> None:
        self.write_varint(len(b))
        self.write_bytes(b)


@dataclass
class Reader:
    data: bytes
    pos: int = 0

    def _take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise MalformedInputError(
                "unexpected end of data", offset=self.pos, wanted=size, available=len(self.data) - self.pos
            )
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_u16(self) -> int:
        return int.from_bytes(self._take(2), "little")

    def read_u32(self) -> int:
        return int.from_bytes(self._take(4), "little")

    def read_u64(self) -> int:
        return int.from_bytes(self._take(8), "little")

    def read_varint(self) -> int:
        prefix = self.read_u8()
        if prefix < 0xFD:
            return prefix
        if prefix == 0xFD:
            return self.read_u16()
        if prefix == 0xFE:
            return self.read_u32()
        return self.read_u64()

    def read_bytes(self, size: int) -> bytes:
        return self._take(size)

    def read_var_bytes(self) -> bytes:
        return self._take(self.read_varint())

    def at_end(self) -> bool:
        return self.pos == len(self.data)


def encode_varint(v: int) -> bytes:
    if v < 0:
        raise MalformedInputError("varint must be non-negative", value=v)
    if v < 0xFD:
        return bytes([v])
    if v <= 0xFFFF:
        return b"\xfd" + v.to_bytes(2, "little")
    if v <= 0xFFFFFFFF:
        return b"\xfe" + v.to_bytes(4, "little")
    return b"\xff" + v.to_bytes(8, "little")


# --- Script pushes ---


def push_data(data: bytes) -> bytes:
    """Smallest push opcode for ``data`` followed by the data itself."""
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + length.to_bytes(4, "little") + data


def script_num(n: int) -> bytes:
    """Minimal CScriptNum encoding (little-endian, sign bit in the top byte)."""
    if n == 0:
        return b""
    negative = n < 0
    magnitude = abs(n)
    out = bytearray()
    while magnitude:
        out.append(magnitude & 0xFF)
        magnitude >>= 8
    if out[-1] & 0x80:
        out.append(0x80 if negative else 0x00)
    elif negative:
        out[-1] |= 0x80
    return bytes(out)


def push_int(n: int) -> bytes:
    if n == 0:
        return bytes([OP_0])
    if n == -1:
        return bytes([OP_1NEGATE])
    if 1 <= n <= 16:
        return bytes([OP_1 + n - 1])
    return push_data(script_num(n))


def small_int_opcode(n: int) -> int:
    if not 0 <= n <= 16:
        raise MalformedInputError("small integer out of range", value=n)
    return OP_0 if n == 0 else OP_1 + n - 1


def pushed_size(length: int) -> int:
    """Serialized size of a data push of ``length`` bytes."""
    if length < OP_PUSHDATA1:
        return 1 + length
    if length <= 0xFF:
        return 2 + length
    if length <= 0xFFFF:
        return 3 + length
    return 5 + length


# --- Transactions ---


def _write_txid(w: Writer, txid: str) -> None:
    try:
        raw = bytes.fromhex(txid)
    except ValueError as exc:
        raise MalformedInputError("txid must be hex", txid=txid) from exc
    if len(raw) != 32:
        raise MalformedInputError("txid must be 32 bytes", txid=txid)
    w.write_bytes(raw[::-1])


def encode_transaction(tx: Transaction) -> bytes:
    w = Writer(bytearray())
    w.write_u32(tx.version)
    w.write_varint(len(tx.inputs))
    for txin in tx.inputs:
        _write_txid(w, txin.prev_txid)
        w.write_u32(txin.prev_vout)
        w.write_var_bytes(txin.script_sig)
        w.write_u32(txin.sequence)
    w.write_varint(len(tx.outputs))
    for txout in tx.outputs:
        if txout.value < 0:
            raise MalformedInputError("output value must be non-negative", value=txout.value)
        w.write_u64(txout.value)
        w.write_var_bytes(txout.script_pubkey)
    w.write_u32(tx.locktime)
    return bytes(w.buf)


def decode_transaction(raw: bytes) -> Transaction:
    r = Reader(raw)
    version = r.read_u32()
    n_in = r.read_varint()
    if n_in == 0:
        # A zero input count is the segwit marker; only legacy layouts are produced here.
        raise MalformedInputError("witness serialization is not supported")
    inputs = []
    for _ in range(n_in):
        prev_txid = r.read_bytes(32)[::-1].hex()
        prev_vout = r.read_u32()
        script_sig = r.read_var_bytes()
        sequence = r.read_u32()
        inputs.append(TxIn(prev_txid, prev_vout, script_sig, sequence))
    outputs = []
    for _ in range(r.read_varint()):
        value = r.read_u64()
        outputs.append(TxOut(value, r.read_var_bytes()))
    locktime = r.read_u32()
    if not r.at_end():
        raise MalformedInputError("trailing bytes after transaction", offset=r.pos)
    return Transaction(version=version, inputs=inputs, outputs=outputs, locktime=locktime)


def parse_script_pushes(script: bytes) -> list[bytes | int]:
    """Split a script into data pushes (bytes) and opcodes (int)."""
    r = Reader(script)
    items: list[bytes | int] = []
    while not r.at_end():
        op = r.read_u8()
        if 0 < op < OP_PUSHDATA1:
            items.append(r.read_bytes(op))
        elif op == OP_PUSHDATA1:
            items.append(r.read_bytes(r.read_u8()))
        elif op == OP_PUSHDATA2:
            items.append(r.read_bytes(r.read_u16()))
        elif op == OP_PUSHDATA4:
            items.append(r.read_bytes(r.read_u32()))
        else:
            items.append(op)
    return items
