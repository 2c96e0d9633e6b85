"""
Groth16 Reaction Proof Verifier
Circuit-version policy enforcement and BN254 pairing verification

Proof wire format (256 bytes, big-endian 32-byte words):
    A = [x, y]                      64 bytes  (G1)
    B = [x.c1, x.c0, y.c1, y.c0]    128 bytes (G2, EIP-197 ordering)
    C = [x, y]                      64 bytes  (G1)
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from py_ecc import bn128
from py_ecc.bn128 import FQ, FQ2

from config.config import ZKConfig
from primitives.babyjubjub import ECPoint

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

PROOF_SIZE = 256
G1_SIZE = 64
G2_SIZE = 128
WORD_SIZE = 32

EMOJI_SLOTS = 6
PUBLIC_INPUT_COUNT = 30

VERIFICATION_KEY_FILENAME = "verification_key.json"
DEV_MODE_VERSION = "dev-mode-v1"


class ZKError(Exception):
    """Base exception for ZK operations"""
    pass


class VerificationKeyError(ZKError):
    """Verification key is missing or malformed"""
    pass


class ProofFormatError(ZKError):
    """Proof bytes do not decode to valid curve points"""
    pass


class VerifyErrorCode(str, Enum):
    """Rejection codes returned by verifiers"""
    VULNERABLE_CIRCUIT_VERSION = "VULNERABLE_CIRCUIT_VERSION"
    UNKNOWN_CIRCUIT_VERSION = "UNKNOWN_CIRCUIT_VERSION"
    INVALID_PROOF_FORMAT = "INVALID_PROOF_FORMAT"
    INVALID_PROOF = "INVALID_PROOF"
    VERIFICATION_ERROR = "VERIFICATION_ERROR"


@dataclass(frozen=True)
class VerifyResult:
    """Outcome of a proof verification; rejections are values, not exceptions"""
    valid: bool
    error_code: Optional[VerifyErrorCode] = None
    message: Optional[str] = None
    warning: Optional[str] = None

    @classmethod
    def success(cls) -> 'VerifyResult':
        return cls(valid=True)

    @classmethod
    def success_with_warning(cls, warning: str) -> 'VerifyResult':
        return cls(valid=True, warning=warning)

    @classmethod
    def failure(cls, error_code: VerifyErrorCode, message: str) -> 'VerifyResult':
        return cls(valid=False, error_code=error_code, message=message)


@dataclass(frozen=True)
class PublicInputs:
    """Public signals of the reaction circuit"""
    nullifier: bytes
    message_id: bytes
    members_root: bytes
    author_commitment: int
    feed_pk: ECPoint
    ciphertext_c1: Tuple[ECPoint, ...]
    ciphertext_c2: Tuple[ECPoint, ...]

    def to_field_elements(self) -> List[int]:
        """Circuit-defined ordering; verification key coefficients are positional"""
        if len(self.ciphertext_c1) != EMOJI_SLOTS or len(self.ciphertext_c2) != EMOJI_SLOTS:
            raise ValueError(
                f"Expected {EMOJI_SLOTS} ciphertext points per component")

        inputs = [
            int.from_bytes(self.nullifier, 'big'),
            int.from_bytes(self.message_id, 'big'),
            int.from_bytes(self.members_root, 'big'),
            self.author_commitment,
            self.feed_pk.x,
            self.feed_pk.y,
        ]
        for point in self.ciphertext_c1:
            inputs.extend([point.x, point.y])
        for point in self.ciphertext_c2:
            inputs.extend([point.x, point.y])
        return inputs


# ============================================================================
# BN254 ENCODING HELPERS
# ============================================================================


def _fq_int(value) -> int:
    return value.n if hasattr(value, 'n') else int(value)


def _words(data: bytes) -> List[int]:
    return [int.from_bytes(data[i:i + WORD_SIZE], 'big')
            for i in range(0, len(data), WORD_SIZE)]


def _check_coordinates(values: Sequence[int]):
    for value in values:
        if value >= bn128.field_modulus:
            raise ProofFormatError("Coordinate exceeds the base field modulus")


def decode_g1(data: bytes):
    x, y = _words(data)
    _check_coordinates((x, y))
    point = (FQ(x), FQ(y))
    if not bn128.is_on_curve(point, bn128.b):
        raise ProofFormatError("G1 point is not on the curve")
    return point


def decode_g2(data: bytes, check_subgroup: bool = True):
    x_c1, x_c0, y_c1, y_c0 = _words(data)
    _check_coordinates((x_c1, x_c0, y_c1, y_c0))
    point = (FQ2([x_c0, x_c1]), FQ2([y_c0, y_c1]))
    if not bn128.is_on_curve(point, bn128.b2):
        raise ProofFormatError("G2 point is not on the twist curve")
    if check_subgroup and bn128.multiply(point, bn128.curve_order) is not None:
        raise ProofFormatError("G2 point is not in the prime-order subgroup")
    return point


def encode_g1(point) -> bytes:
    x, y = point
    return _fq_int(x).to_bytes(WORD_SIZE, 'big') + _fq_int(y).to_bytes(WORD_SIZE, 'big')


def encode_g2(point) -> bytes:
    x, y = point
    x_c0, x_c1 = (_fq_int(c) for c in x.coeffs)
    y_c0, y_c1 = (_fq_int(c) for c in y.coeffs)
    return b"".join(v.to_bytes(WORD_SIZE, 'big') for v in (x_c1, x_c0, y_c1, y_c0))


def encode_proof(a, b, c) -> bytes:
    """Serialize proof points to the 256-byte wire format"""
    return encode_g1(a) + encode_g2(b) + encode_g1(c)


def decode_proof(proof: bytes, check_subgroup: bool = True):
    if len(proof) != PROOF_SIZE:
        raise ProofFormatError(
            f"Proof must be {PROOF_SIZE} bytes, got {len(proof)}")
    a = decode_g1(proof[:G1_SIZE])
    b = decode_g2(proof[G1_SIZE:G1_SIZE + G2_SIZE], check_subgroup)
    c = decode_g1(proof[G1_SIZE + G2_SIZE:])
    return a, b, c


# ============================================================================
# VERIFICATION KEYS
# ============================================================================


def _g1_from_json(values: Sequence[Any]):
    if len(values) > 2 and int(values[2]) == 0:
        return None
    point = (FQ(int(values[0])), FQ(int(values[1])))
    if not bn128.is_on_curve(point, bn128.b):
        raise VerificationKeyError("G1 element of verification key not on curve")
    return point


def _g2_from_json(values: Sequence[Any]):
    point = (FQ2([int(values[0][0]), int(values[0][1])]),
             FQ2([int(values[1][0]), int(values[1][1])]))
    if not bn128.is_on_curve(point, bn128.b2):
        raise VerificationKeyError("G2 element of verification key not on curve")
    return point


def _g1_to_json(point) -> List[str]:
    if point is None:
        return ["0", "1", "0"]
    return [str(_fq_int(point[0])), str(_fq_int(point[1])), "1"]


def _g2_to_json(point) -> List[List[str]]:
    x, y = point
    return [[str(_fq_int(c)) for c in x.coeffs],
            [str(_fq_int(c)) for c in y.coeffs],
            ["1", "0"]]


@dataclass
class VerificationKey:
    """Groth16 verification key for one circuit version"""
    version: str
    alpha: Any
    beta: Any
    gamma: Any
    delta: Any
    ic: List[Any]
    _alpha_beta: Any = field(default=None, repr=False, compare=False)

    @property
    def n_public(self) -> int:
        return len(self.ic) - 1

    def alpha_beta_pairing(self):
        """e(alpha, beta) is constant per key"""
        if self._alpha_beta is None:
            self._alpha_beta = bn128.pairing(self.beta, self.alpha)
        return self._alpha_beta

    @classmethod
    def from_snarkjs(cls, version: str, data: Dict[str, Any]) -> 'VerificationKey':
        """Parse a snarkjs verification_key.json document"""
        try:
            protocol = data.get('protocol', 'groth16')
            if protocol != 'groth16':
                raise VerificationKeyError(
                    f"Unsupported proving protocol: {protocol}")
            ic = [_g1_from_json(point) for point in data['IC']]
            vkey = cls(
                version=version,
                alpha=_g1_from_json(data['vk_alpha_1']),
                beta=_g2_from_json(data['vk_beta_2']),
                gamma=_g2_from_json(data['vk_gamma_2']),
                delta=_g2_from_json(data['vk_delta_2']),
                ic=ic,
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise VerificationKeyError(
                f"Malformed verification key for {version}: {e}") from e

        n_public = data.get('nPublic')
        if n_public is not None and int(n_public) != vkey.n_public:
            raise VerificationKeyError(
                f"nPublic={n_public} does not match {len(ic)} IC points")
        return vkey

    @classmethod
    def load(cls, version: str, path: Path) -> 'VerificationKey':
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise VerificationKeyError(
                f"Cannot read verification key {path}: {e}") from e
        return cls.from_snarkjs(version, data)

    def to_snarkjs(self) -> Dict[str, Any]:
        return {
            'protocol': 'groth16',
            'curve': 'bn128',
            'nPublic': self.n_public,
            'vk_alpha_1': _g1_to_json(self.alpha),
            'vk_beta_2': _g2_to_json(self.beta),
            'vk_gamma_2': _g2_to_json(self.gamma),
            'vk_delta_2': _g2_to_json(self.delta),
            'IC': [_g1_to_json(point) for point in self.ic],
        }


# ============================================================================
# VERIFIERS
# ============================================================================


class ZKVerifier(ABC):
    """Verifier contract shared by production and development verifiers"""

    @abstractmethod
    async def verify(self, proof: bytes, public_inputs: PublicInputs,
                     circuit_version: str) -> VerifyResult:
        ...

    @abstractmethod
    def get_current_version(self) -> str:
        ...

    @abstractmethod
    def is_version_supported(self, circuit_version: str) -> bool:
        ...

    @abstractmethod
    def is_vulnerable_version(self, circuit_version: str) -> bool:
        ...


class Groth16Verifier(ZKVerifier):
    """Groth16 verifier over BN254 with circuit-version policy"""

    def __init__(self, config: Optional[ZKConfig] = None):
        self.config = config or ZKConfig()
        self.current_version = self.config.current_version
        self.deprecated_versions = set(self.config.deprecated_versions)
        self.vulnerable_versions = set(self.config.vulnerable_versions)
        self._vkey_cache: Dict[str, VerificationKey] = {}

        self._load_verification_keys()

    def _load_verification_keys(self):
        for version in self.config.supported_versions:
            vkey_file = self.config.circuits_dir / version / VERIFICATION_KEY_FILENAME
            if not vkey_file.exists():
                logger.warning(
                    f"Verification key not found for circuit {version} at {vkey_file}; "
                    f"proofs for this version will be rejected")
                continue
            self._vkey_cache[version] = VerificationKey.load(version, vkey_file)
            logger.info(f"Loaded verification key for circuit {version}")

        if self.current_version not in self._vkey_cache:
            logger.warning(
                f"No verification key registered for current circuit {self.current_version}")

    def register_verification_key(self, vkey: VerificationKey):
        if vkey.version in self.vulnerable_versions:
            logger.warning(
                f"Registering key for vulnerable circuit {vkey.version}; proofs will still be rejected")
        self._vkey_cache[vkey.version] = vkey
        logger.info(f"Registered verification key for circuit {vkey.version}")

    def get_current_version(self) -> str:
        return self.current_version

    def is_version_supported(self, circuit_version: str) -> bool:
        return circuit_version in self._vkey_cache

    def is_vulnerable_version(self, circuit_version: str) -> bool:
        return circuit_version in self.vulnerable_versions

    async def verify(self, proof: bytes, public_inputs: PublicInputs,
                     circuit_version: str) -> VerifyResult:
        # A known-broken circuit never reaches proof parsing
        if self.is_vulnerable_version(circuit_version):
            logger.warning(
                f"Rejected proof for vulnerable circuit {circuit_version}")
            return VerifyResult.failure(
                VerifyErrorCode.VULNERABLE_CIRCUIT_VERSION,
                f"Circuit version '{circuit_version}' has known vulnerabilities. "
                f"Use '{self.current_version}'.")

        vkey = self._vkey_cache.get(circuit_version)
        if vkey is None:
            logger.warning(f"Rejected proof for unknown circuit {circuit_version}")
            return VerifyResult.failure(
                VerifyErrorCode.UNKNOWN_CIRCUIT_VERSION,
                f"Unknown circuit version '{circuit_version}'. Use '{self.current_version}'.")

        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None, self._verify_with_key, vkey, bytes(proof), public_inputs)
        except Exception as e:
            logger.error(f"Proof verification error: {e}", exc_info=True)
            return VerifyResult.failure(
                VerifyErrorCode.VERIFICATION_ERROR, f"Verification error: {e}")

        if not result.valid:
            return result

        if circuit_version in self.deprecated_versions:
            return VerifyResult.success_with_warning(
                f"Circuit version '{circuit_version}' is deprecated. "
                f"Please update to '{self.current_version}'.")
        return result

    def _verify_with_key(self, vkey: VerificationKey, proof: bytes,
                         public_inputs: PublicInputs) -> VerifyResult:
        start_time = time.time()

        try:
            a, b, c = decode_proof(proof, self.config.verify_g2_subgroup)
        except ProofFormatError as e:
            logger.warning(f"Malformed proof: {e}")
            return VerifyResult.failure(VerifyErrorCode.INVALID_PROOF_FORMAT, str(e))

        try:
            inputs = public_inputs.to_field_elements()
        except ValueError as e:
            return VerifyResult.failure(VerifyErrorCode.INVALID_PROOF, str(e))

        if len(inputs) != vkey.n_public:
            return VerifyResult.failure(
                VerifyErrorCode.INVALID_PROOF,
                f"Circuit expects {vkey.n_public} public inputs, got {len(inputs)}")

        for position, value in enumerate(inputs):
            if not 0 <= value < bn128.curve_order:
                return VerifyResult.failure(
                    VerifyErrorCode.INVALID_PROOF,
                    f"Public input {position} is not a scalar field element")

        # vk_x = IC[0] + sum(pub_i * IC[i + 1])
        vk_x = vkey.ic[0]
        for value, ic_point in zip(inputs, vkey.ic[1:]):
            if value:
                vk_x = bn128.add(vk_x, bn128.multiply(ic_point, value))

        lhs = bn128.pairing(b, a)
        rhs = vkey.alpha_beta_pairing() * bn128.pairing(vkey.delta, c)
        if vk_x is not None:
            rhs = rhs * bn128.pairing(vkey.gamma, vk_x)

        if lhs != rhs:
            logger.warning(f"Pairing check failed for circuit {vkey.version}")
            return VerifyResult.failure(
                VerifyErrorCode.INVALID_PROOF, "Pairing check failed")

        logger.debug(
            f"Verified proof for circuit {vkey.version} in {time.time() - start_time:.3f}s")
        return VerifyResult.success()


class DevModeVerifier(ZKVerifier):
    """Accepts every proof; for end-to-end testing without circuits"""

    WARNING_MESSAGE = "DEV MODE: Proof accepted without verification. Do not use in production!"

    def __init__(self):
        logger.warning("=" * 80)
        logger.warning("DEV MODE ZK VERIFIER ENABLED")
        logger.warning("All reaction proofs will be accepted WITHOUT verification.")
        logger.warning("This configuration must never be used in production.")
        logger.warning("=" * 80)

    async def verify(self, proof: bytes, public_inputs: PublicInputs,
                     circuit_version: str) -> VerifyResult:
        logger.warning(
            f"DEV MODE: accepting unverified proof for circuit {circuit_version}")
        return VerifyResult.success_with_warning(self.WARNING_MESSAGE)

    def get_current_version(self) -> str:
        return DEV_MODE_VERSION

    def is_version_supported(self, circuit_version: str) -> bool:
        return True

    def is_vulnerable_version(self, circuit_version: str) -> bool:
        return False


def create_verifier(config: Optional[ZKConfig] = None) -> ZKVerifier:
    """Production verifier unless dev mode is explicitly configured"""
    config = config or ZKConfig()
    if config.dev_mode:
        return DevModeVerifier()
    return Groth16Verifier(config)
