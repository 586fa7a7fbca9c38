# setup.py
from setuptools import setup, find_packages

setup(
    name="amm_pool",
    version="0.1.0",
    packages=find_packages(include=["amm_pool", "amm_pool.*"]),
    python_requires=">=3.10",
    install_requires=[
        "msgpack",            # account records
        "PyNaCl",             # ed25519
        "plyvel",             # accounts database
        "prometheus_client",  # monitoring
        "pycryptodome",       # keccak
        "solders",            # pubkeys, derived addresses, instructions
        "construct",          # fixed binary layouts
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "pool-tool=amm_pool.pool_tool:main",
        ],
    },
)
