"""Plain and secret-shared tables, and the query description used to join them."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from typing import Optional, Union

import numpy as np


def _i64_cols(bit_count: int) -> int:
    return (bit_count + 63) // 64


class TypeID(enum.IntEnum):
    """Identifier of a column's data type, as exchanged between parties."""

    INT = 0
    STRING = 1


class DataType(abc.ABC):
    """The type of the values held in a column."""

    @abc.abstractmethod
    def type_id(self) -> TypeID:
        """The identifier of this type."""

    @abc.abstractmethod
    def bit_count(self) -> int:
        """The number of bits a value of this type occupies."""


class IntType(DataType):
    """An integer of a fixed number of bits."""

    def __init__(self, bit_count: int) -> None:
        if bit_count < 0:
            raise ValueError("bit count must be non-negative")
        self.bits = bit_count

    def bit_count(self) -> int:
        return self.bits

    def type_id(self) -> TypeID:
        return TypeID.INT

    def __eq__(self, other: object) -> bool:
        return isinstance(other, IntType) and other.bits == self.bits

    def __hash__(self) -> int:
        return hash((TypeID.INT, self.bits))

    def __repr__(self) -> str:
        return f"IntType({self.bits})"


class StringType(DataType):
    """A fixed-length string of 8-bit characters."""

    def __init__(self, bit_count: int) -> None:
        if bit_count < 0 or bit_count % 8:
            raise ValueError("string bit count must be a non-negative multiple of 8")
        self.char_count = bit_count // 8

    def bit_count(self) -> int:
        return self.char_count * 8

    def type_id(self) -> TypeID:
        return TypeID.STRING

    def __eq__(self, other: object) -> bool:
        return isinstance(other, StringType) and other.char_count == self.char_count

    def __hash__(self) -> int:
        return hash((TypeID.STRING, self.char_count))

    def __repr__(self) -> str:
        return f"StringType({self.bit_count()})"


def _make_type(type_id: Union[TypeID, int], size: int) -> DataType:
    type_id = TypeID(type_id)
    if type_id is TypeID.INT:
        return IntType(size)
    return StringType(size)


class _ColumnBase:
    def __init__(self, name: str, type_id: Union[TypeID, int], size: int) -> None:
        self.name = name
        self.type: DataType = _make_type(type_id, size)

    def bit_count(self) -> int:
        return self.type.bit_count()

    def byte_count(self) -> int:
        """Bytes needed to hold one value of this column."""
        return (self.bit_count() + 7) // 8

    def type_id(self) -> TypeID:
        return self.type.type_id()


class Column(_ColumnBase):
    """A plaintext column; each row is stored as 64-bit words."""

    def __init__(self, name: str, type_id: Union[TypeID, int], size: int, rows: int = 0) -> None:
        super().__init__(name, type_id, size)
        self.data = np.zeros((rows, _i64_cols(size)), dtype=np.int64)

    def byte_count(self) -> int:
        return super().byte_count()


class SharedColumn(_ColumnBase):
    """A column held as a replicated binary (XOR) sharing: two share matrices."""

    def __init__(self, name: str, type_id: Union[TypeID, int], size: int, rows: int = 0) -> None:
        super().__init__(name, type_id, size)
        cols = _i64_cols(size)
        self.shares = [np.zeros((rows, cols), dtype=np.int64) for _ in range(2)]

    def byte_count(self) -> int:
        return super().byte_count()

    def resize(self, rows: int, bit_count: int) -> None:
        """Reshape both shares to ``rows`` rows of ``bit_count`` bits, keeping the overlap."""
        if rows < 0 or bit_count < 0:
            raise ValueError("rows and bit count must be non-negative")
        cols = _i64_cols(bit_count)
        resized = []
        for share in self.shares:
            new = np.zeros((rows, cols), dtype=np.int64)
            r = min(rows, share.shape[0])
            c = min(cols, share.shape[1])
            new[:r, :c] = share[:r, :c]
            resized.append(new)
        self.shares = resized

    def rows(self) -> int:
        return self.shares[0].shape[0]


ColumnInfo = tuple[str, TypeID, int]


class Table:
    """A plaintext table of equally long columns."""

    def __init__(self, rows: int = 0, columns: Optional[list[ColumnInfo]] = None) -> None:
        self.columns: list[Column] = [
            Column(name, type_id, size, rows) for name, type_id, size in (columns or [])
        ]

    def rows(self) -> int:
        return self.columns[0].data.shape[0] if self.columns else 0


@dataclass(frozen=True, eq=False)
class ColRef:
    """A column together with the shared table it belongs to."""

    table: "SharedTable"
    col: SharedColumn


class SharedTable:
    """A secret-shared table."""

    def __init__(self, columns: Optional[list[SharedColumn]] = None) -> None:
        self.columns: list[SharedColumn] = list(columns or [])

    def __getitem__(self, key: Union[str, int]) -> ColRef:
        if isinstance(key, str):
            for col in self.columns:
                if col.name == key:
                    return ColRef(self, col)
            raise KeyError(key)
        return ColRef(self, self.columns[key])

    def rows(self) -> int:
        return self.columns[0].rows() if self.columns else 0


class SelectOp(enum.Enum):
    """Operations a query may apply to its inputs."""

    BITWISE_OR = 0
    BITWISE_AND = 1
    MULTIPLY = 2
    ADD = 3
    LESS_THAN = 4
    INVERSE = 5


@dataclass
class _Gate:
    op: SelectOp
    in1: int
    in2: Optional[int]
    out: int


@dataclass
class _Mem:
    type: Optional[DataType] = None
    gate: Optional[_Gate] = None
    input_idx: Optional[int] = None
    output_idx: Optional[int] = None
    idx: int = -1
    used: bool = False

    @property
    def is_input(self) -> bool:
        return self.input_idx is not None

    @property
    def is_output(self) -> bool:
        return self.output_idx is not None


@dataclass(eq=False)
class _Input:
    mem_idx: int
    col: ColRef
    position: int


@dataclass(eq=False)
class _Output:
    mem_idx: int
    name: str
    position: int


class SelectBundle:
    """A value inside a query; operators on bundles add gates to the query."""

    def __init__(self, query: "SelectQuery", mem_idx: int) -> None:
        self.query = query
        self.mem_idx = mem_idx

    def __or__(self, other: "SelectBundle") -> "SelectBundle":
        return SelectBundle(self.query, self.query.add_op(SelectOp.BITWISE_OR, self.mem_idx, other.mem_idx))

    def __and__(self, other: "SelectBundle") -> "SelectBundle":
        return SelectBundle(self.query, self.query.add_op(SelectOp.BITWISE_AND, self.mem_idx, other.mem_idx))

    def __lt__(self, other: "SelectBundle") -> "SelectBundle":
        return SelectBundle(self.query, self.query.add_op(SelectOp.LESS_THAN, self.mem_idx, other.mem_idx))

    def __invert__(self) -> "SelectBundle":
        return SelectBundle(self.query, self.query.add_op(SelectOp.INVERSE, self.mem_idx))

    def __mul__(self, other: "SelectBundle") -> "SelectBundle":
        return SelectBundle(self.query, self.query.add_op(SelectOp.MULTIPLY, self.mem_idx, other.mem_idx))

    def __add__(self, other: "SelectBundle") -> "SelectBundle":
        return SelectBundle(self.query, self.query.add_op(SelectOp.ADD, self.mem_idx, other.mem_idx))


@dataclass(eq=False)
class SelectQuery:
    """A join of two shared tables with the columns and expressions to select."""

    no_reveal_name: str = ""
    is_union: bool = False
    left_table: Optional[SharedTable] = None
    right_table: Optional[SharedTable] = None
    left_col: Optional[SharedColumn] = None
    right_col: Optional[SharedColumn] = None
    mem: list[_Mem] = field(default_factory=list)
    inputs: list[_Input] = field(default_factory=list)
    outputs: list[_Output] = field(default_factory=list)
    gates: list[_Gate] = field(default_factory=list)
    left_inputs: list[_Input] = field(default_factory=list)
    right_inputs: list[_Input] = field(default_factory=list)

    def _require_join(self) -> None:
        if self.left_table is None:
            raise RuntimeError("call join_on(...) first")

    def add_input(self, column: ColRef) -> SelectBundle:
        """Make a column of the left or right table available to the query."""
        self._require_join()
        if column.table is self.left_table:
            side = self.left_inputs
        elif column.table is self.right_table:
            side = self.right_inputs
        else:
            raise ValueError("column belongs to neither joined table")

        mem_idx = len(self.mem)
        query_input = _Input(mem_idx, column, len(self.inputs))
        self.inputs.append(query_input)
        self.mem.append(
            _Mem(type=column.col.type, input_idx=len(self.inputs) - 1, idx=mem_idx)
        )
        side.append(query_input)
        return SelectBundle(self, mem_idx)

    def join_on(self, left: ColRef, right: ColRef) -> SelectBundle:
        """Join on ``left == right``; returns the bundle of the join column."""
        if self.left_table is not None:
            raise RuntimeError("join_on(...) has already been called")
        self.left_table = left.table
        self.right_table = right.table
        self.left_col = left.col
        self.right_col = right.col
        bundle = self.add_input(left)
        self.mem[-1].used = True
        self.add_input(right)
        return bundle

    def add_op(self, op: SelectOp, wire1: int, wire2: Optional[int] = None) -> int:
        """Add a gate over existing values; returns the index of its result."""
        self._require_join()
        if wire2 is None:
            if op is not SelectOp.INVERSE:
                raise ValueError(f"{op.name} needs two operands")
            if not 0 <= wire1 < len(self.mem):
                raise ValueError(f"no value with index {wire1}")
            result_type = self.mem[wire1].type
            self.mem[wire1].used = True
        else:
            if not (0 <= wire1 < len(self.mem) and 0 <= wire2 < len(self.mem)):
                raise ValueError(f"no value with index {wire1} or {wire2}")
            first, second = self.mem[wire1], self.mem[wire2]
            if op in (SelectOp.BITWISE_OR, SelectOp.BITWISE_AND):
                if first.type.bit_count() != second.type.bit_count():
                    raise ValueError("bitwise operands must have the same bit count")
                result_type = first.type
            elif op is SelectOp.LESS_THAN:
                result_type = IntType(1)
            elif op in (SelectOp.MULTIPLY, SelectOp.ADD):
                result_type = first.type
            else:
                raise ValueError(f"{op.name} takes one operand")
            first.used = True
            second.used = True

        out = len(self.mem)
        gate = _Gate(op, wire1, wire2, out)
        self.gates.append(gate)
        self.mem.append(_Mem(type=result_type, gate=gate, idx=out))
        return out

    def add_output(self, name: str, column: SelectBundle) -> None:
        """Select ``column`` into the result under ``name``."""
        self._require_join()
        mem = self.mem[column.mem_idx]
        output = _Output(mem.idx, name, -1)
        self.outputs.append(output)
        mem.output_idx = len(self.outputs) - 1

        position = -1
        if not self.is_left_passthrough(output):
            position = max(
                (o.position for o in self.outputs if not self.is_left_passthrough(o)),
                default=-1,
            ) + 1
        output.position = position

    def no_reveal(self, column_name: str) -> None:
        """Keep the match flags secret, storing them in a column of this name."""
        self.no_reveal_name = column_name

    def is_no_reveal(self) -> bool:
        return bool(self.no_reveal_name)

    def is_left_passthrough(self, output: _Output) -> bool:
        mem = self.mem[output.mem_idx]
        return mem.is_input and self.inputs[mem.input_idx].col.table is self.left_table

    def is_right_passthrough(self, output: _Output) -> bool:
        mem = self.mem[output.mem_idx]
        return mem.is_input and self.inputs[mem.input_idx].col.table is self.right_table

    def is_circuit_input(self, query_input: _Input) -> bool:
        return query_input.col.table is self.right_table or self.mem[query_input.mem_idx].used