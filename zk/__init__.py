"""
zk: proof-system primitives for the vault engine (Poseidon, BN254 pairing, Groth16 and reference verifiers).
"""
