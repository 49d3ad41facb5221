"""Three-party secret-sharing building blocks: PRNG, share generation, LowMC,
in-process channels, oblivious permutation, switching network and select queries."""

__version__ = "0.1.0"
__all__ = [
    "prng",
    "sharegen",
    "lowmc",
    "channel",
    "oblv_permutation",
    "oblv_switch_net",
    "table",
]