"""
Core cryptographic functions for the pool program and its local runtime.
"""
import nacl.signing
import nacl.exceptions
from solders.pubkey import Pubkey

AUTHORITY_SEED = b"authority"
MAX_SEEDS = 16
MAX_SEED_LEN = 32
PDA_MARKER = b"ProgramDerivedAddress"


class InvalidSeeds(ValueError):
    pass


def generate_hash(data: bytes) -> bytes:
    """Generates a Keccak-256 hash."""
    from Crypto.Hash import keccak
    return keccak.new(digest_bits=256, data=data).digest()


def generate_key_pair() -> tuple[nacl.signing.SigningKey, Pubkey]:
    """Generates an ed25519 signing key and the account identity it controls."""
    signing_key = nacl.signing.SigningKey.generate()
    return signing_key, public_key_to_address(signing_key.verify_key)


def public_key_to_address(verify_key: nacl.signing.VerifyKey) -> Pubkey:
    """An ed25519 verify key is its own 32-byte account address."""
    return Pubkey.from_bytes(bytes(verify_key))


def sign(signing_key: nacl.signing.SigningKey, data: bytes) -> bytes:
    """Signs byte data, returning the detached 64-byte signature."""
    return signing_key.sign(data).signature


def verify_signature(address: Pubkey, signature: bytes, data: bytes) -> bool:
    """Verifies an ed25519 signature made by the key behind address."""
    try:
        nacl.signing.VerifyKey(bytes(address)).verify(data, signature)
        return True
    except (nacl.exceptions.BadSignatureError, ValueError):
        # Catch both cryptographic failures and format/length errors
        return False


def program_id_from_name(name: str) -> Pubkey:
    """Deterministic program id for local deployments."""
    return Pubkey.from_bytes(generate_hash(b"program:" + name.encode()))


def find_pool_authority(pool: Pubkey, program_id: Pubkey) -> tuple[Pubkey, int]:
    """
    Derive the program-owned signer of a pool's vaults and liquidity mint.

    Returns:
        (authority address, bump seed)
    """
    return Pubkey.find_program_address([AUTHORITY_SEED, bytes(pool)], program_id)


def create_program_address(seeds: list[bytes], program_id: Pubkey) -> Pubkey:
    """
    Recreate a program derived address from its full seed list.

    Raises:
        InvalidSeeds: Too many or oversized seeds, or the hash lands on the
            ed25519 curve and so could have a private key
    """
    from Crypto.Hash import SHA256
    if len(seeds) > MAX_SEEDS:
        raise InvalidSeeds(f"{len(seeds)} seeds exceeds the limit of {MAX_SEEDS}")
    hasher = SHA256.new()
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise InvalidSeeds(f"Seed of {len(seed)} bytes exceeds {MAX_SEED_LEN}")
        hasher.update(seed)
    hasher.update(bytes(program_id))
    hasher.update(PDA_MARKER)
    address = Pubkey.from_bytes(hasher.digest())
    if address.is_on_curve():
        raise InvalidSeeds("Derived address lies on the ed25519 curve")
    return address


def pool_authority_seeds(pool: Pubkey, bump: int) -> list[bytes]:
    """Seeds the program signs with when acting as the pool authority."""
    return [AUTHORITY_SEED, bytes(pool), bytes([bump])]
