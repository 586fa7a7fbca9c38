"""
Signatures and derived pool authorities.
"""
import pytest
from solders.pubkey import Pubkey

from amm_pool.crypto import (
    AUTHORITY_SEED,
    InvalidSeeds,
    create_program_address,
    find_pool_authority,
    generate_hash,
    generate_key_pair,
    pool_authority_seeds,
    program_id_from_name,
    sign,
    verify_signature,
)


class TestSignatures:

    def test_sign_and_verify(self):
        signing_key, address = generate_key_pair()
        signature = sign(signing_key, b"payload")
        assert len(signature) == 64
        assert verify_signature(address, signature, b"payload")
        assert not verify_signature(address, signature, b"tampered")

    def test_wrong_key(self):
        signing_key, _ = generate_key_pair()
        _, other = generate_key_pair()
        assert not verify_signature(other, sign(signing_key, b"x"), b"x")

    def test_malformed_signature(self):
        _, address = generate_key_pair()
        assert not verify_signature(address, b"short", b"x")

    def test_keccak(self):
        assert generate_hash(b"").hex() == \
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


class TestPoolAuthority:

    def test_derivation_is_deterministic(self):
        program_id = program_id_from_name("amm_pool")
        pool = Pubkey.new_unique()
        assert find_pool_authority(pool, program_id) == find_pool_authority(pool, program_id)

    def test_authority_differs_per_pool(self):
        program_id = program_id_from_name("amm_pool")
        first, _ = find_pool_authority(Pubkey.new_unique(), program_id)
        second, _ = find_pool_authority(Pubkey.new_unique(), program_id)
        assert first != second

    def test_seeds_recreate_authority(self):
        program_id = program_id_from_name("amm_pool")
        pool = Pubkey.new_unique()
        authority, bump = find_pool_authority(pool, program_id)
        seeds = pool_authority_seeds(pool, bump)
        assert seeds[0] == AUTHORITY_SEED
        assert Pubkey.create_program_address(seeds, program_id) == authority
        assert not authority.is_on_curve()


def pool_with_skipped_bump(program_id):
    """A pool whose authority search rejected at least one on-curve bump."""
    while True:
        pool = Pubkey.new_unique()
        _, bump = find_pool_authority(pool, program_id)
        if bump < 255:
            return pool, bump


class TestCreateProgramAddress:

    def test_matches_solders(self):
        program_id = program_id_from_name("amm_pool")
        pool = Pubkey.new_unique()
        authority, bump = find_pool_authority(pool, program_id)
        seeds = pool_authority_seeds(pool, bump)
        assert create_program_address(seeds, program_id) == authority
        assert create_program_address(seeds, program_id) == Pubkey.create_program_address(seeds, program_id)

    def test_on_curve_bump_rejected(self):
        program_id = program_id_from_name("amm_pool")
        pool, bump = pool_with_skipped_bump(program_id)
        with pytest.raises(InvalidSeeds):
            create_program_address(pool_authority_seeds(pool, bump + 1), program_id)

    def test_oversized_seed(self):
        with pytest.raises(InvalidSeeds):
            create_program_address([b"x" * 33], program_id_from_name("amm_pool"))

    def test_too_many_seeds(self):
        with pytest.raises(InvalidSeeds):
            create_program_address([b"s"] * 17, program_id_from_name("amm_pool"))
