"""
Zero-Knowledge Proof Module for Anonymous Reactions
Groth16 proof verification and membership Merkle trees
"""

from .merkle_tree import SparseMerkleTree, MerkleProof, TREE_DEPTH
from .verifier import (
    # Core classes
    ZKVerifier,
    Groth16Verifier,
    DevModeVerifier,
    VerificationKey,
    VerifyResult,
    VerifyErrorCode,
    PublicInputs,
    create_verifier,
    decode_proof,
    encode_proof,
    PROOF_SIZE,
    PUBLIC_INPUT_COUNT,

    # Exceptions
    ZKError,
    VerificationKeyError,
    ProofFormatError,
)

__version__ = "1.0.0"
__author__ = "Protocol Omega Team"

__all__ = [
    # Classes
    'SparseMerkleTree',
    'MerkleProof',
    'TREE_DEPTH',
    'ZKVerifier',
    'Groth16Verifier',
    'DevModeVerifier',
    'VerificationKey',
    'VerifyResult',
    'VerifyErrorCode',
    'PublicInputs',
    'create_verifier',
    'decode_proof',
    'encode_proof',
    'PROOF_SIZE',
    'PUBLIC_INPUT_COUNT',

    # Exceptions
    'ZKError',
    'VerificationKeyError',
    'ProofFormatError',
]
