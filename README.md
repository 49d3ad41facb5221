# obliviousdb

Building blocks for joining secret-shared tables among three parties.
Each party holds replicated shares of every column. The parties combine
oblivious permutations and switching networks so that rows can be moved
and copied without anyone learning where they went.

## Install

```
pip install obliviousdb
```

For the test suite:

```
pip install "obliviousdb[test]"
pytest
```

## Modules

- `obliviousdb.prng`: `PRNG(seed, buffer_size=256)`, a deterministic AES
  counter-mode generator. The seed is 16 bytes or an int below 2**128. It
  provides `set_seed`, `random_bytes`, `random_u32`, `random_u64`,
  `random_bool` and `random_block`.
- `obliviousdb.sharegen`: `ShareGen`, which gives correlated randomness from
  the seeds shared with the previous and the next party. Call
  `init(prev_seed, next_seed, buff_size=256)` first. It then provides
  `get_share` (an additive share of zero), `get_binary_share` (a XOR share of
  zero), `get_rand_int_share` and `get_rand_binary_share` (replicated share
  pairs) and `refill_buffer`.
- `obliviousdb.lowmc`: the `LowMC` block cipher, with blocks held as Python
  integers. It provides `encrypt`, `decrypt` (only for instances built with
  `invertible=True`), `set_key`, `substitution`, `inv_substitution` and
  `format_matrices`. The instance is generated deterministically. When it is
  invertible, matrices are read from `linMtx_<r>.txt` and `keyMtx_<r>.txt` in
  the working directory if those files exist. The module also has the GF(2)
  helpers `rank_of_matrix`, `invert_matrix`, `load_matrix` and `write_matrix`.
- `obliviousdb.channel`: `channel_pair()` returns two connected in-process
  `Channel` ends. `send(value)` never blocks. `recv(timeout=None)` raises
  `TimeoutError` if nothing arrives in time.
- `obliviousdb.oblv_permutation`: `OblvPermutation` has three roles: `send`,
  `recv` and `program`. `OutputType` is `OVERWRITE` or `ADDITIVE`.
  Afterwards the XOR of the receiver's and the programmer's matrices holds
  source row `k` at row `permutation[k]`. A target of `None` or `-1` drops
  that row.
- `obliviousdb.oblv_switch_net`: `SwitchProgram` is a list of `(src, dest)`
  switches, with `init`, `add_switch`, `finalize`, `next_free`, `validate`
  and `reset`. `OblvSwitchNet` has three roles:
  - `send_recv` for the sender,
  - `help` for the helper,
  - `program` for the programmer.

  It also exposes the sub-steps `send_select`, `recv_select`,
  `program_select`, `send_duplicate`, `help_duplicate` and
  `program_duplicate`. A source row may feed any number of destination rows.
- `obliviousdb.table`: column types (`TypeID`, `DataType`, `IntType`,
  `StringType`), columns (`Column`, `SharedColumn`), tables (`Table`,
  `SharedTable`) and `ColRef`. It also has the query builder `SelectQuery`.
  Its `SelectBundle` values support `|`, `&`, `<`, `~`, `*` and `+`, and each
  operator records a `SelectOp` gate.

## Example: an oblivious permutation

Each role runs in its own thread, and the roles talk over channel pairs.

```python
import threading
import numpy as np

from obliviousdb.channel import channel_pair
from obliviousdb.oblv_permutation import OblvPermutation, OutputType
from obliviousdb.prng import PRNG

# sender <-> programmer, sender <-> receiver, programmer <-> receiver
s_p, p_s = channel_pair()
s_r, r_s = channel_pair()
p_r, r_p = channel_pair()

src = np.arange(12, dtype=np.uint8).reshape(4, 3)
perm = [2, 0, 3, 1]
prog_share = np.zeros((4, 3), dtype=np.uint8)
recv_share = np.zeros((4, 3), dtype=np.uint8)

threads = [
    threading.Thread(target=OblvPermutation().send, args=(s_p, s_r, src, "demo")),
    threading.Thread(
        target=OblvPermutation().program,
        args=(p_r, p_s, perm, PRNG(0), prog_share, "demo", OutputType.OVERWRITE),
    ),
]
for t in threads:
    t.start()
OblvPermutation().recv(r_p, r_s, recv_share, 4, "demo", OutputType.OVERWRITE)
for t in threads:
    t.join()

result = prog_share ^ recv_share
assert (result[perm] == src).all()
```

## Example: describing a query

```python
from obliviousdb.table import SelectQuery, SharedColumn, SharedTable, TypeID

left = SharedTable([SharedColumn("id", TypeID.INT, 64, rows=4)])
right = SharedTable([
    SharedColumn("id", TypeID.INT, 64, rows=5),
    SharedColumn("a", TypeID.INT, 32, rows=5),
    SharedColumn("b", TypeID.INT, 32, rows=5),
])

query = SelectQuery()
key = query.join_on(left["id"], right["id"])
query.add_output("id", key)
query.add_output("total", query.add_input(right["a"]) + query.add_input(right["b"]))
```

## What this package does not do

- It has no command-line program and no server.
- Channels only connect parties within one process. There is no network
  transport.
- `SelectQuery` only describes a join and its selected expressions. Nothing
  in the package builds a circuit from a query or evaluates one on shares.
- Nothing runs a complete join or union over `SharedTable` objects.
- Nothing turns a plaintext `Table` into shares.