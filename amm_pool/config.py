"""
Configuration management for the pool runtime.
"""
import json
import logging
import os
from typing import Optional
from dataclasses import dataclass, asdict

from solders.pubkey import Pubkey

from amm_pool.crypto import program_id_from_name


@dataclass
class ProgramConfig:
    """Program deployment configuration."""
    name: str = "amm_pool"
    program_id: Optional[str] = None  # base58; derived from name when unset

    def resolve_program_id(self) -> Pubkey:
        if self.program_id:
            return Pubkey.from_string(self.program_id)
        return program_id_from_name(self.name)


@dataclass
class DatabaseConfig:
    """Database configuration."""
    path: str = "./pool_data"
    write_buffer_size: int = 64 * 1024 * 1024  # 64MB
    max_open_files: int = 1000
    compression: Optional[str] = "snappy"


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    def apply(self):
        logging.basicConfig(level=getattr(logging, self.level.upper()), format=self.format)


@dataclass
class Config:
    """Main configuration."""
    program: ProgramConfig
    database: DatabaseConfig
    monitoring: MonitoringConfig
    logging: LoggingConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            program=ProgramConfig(),
            database=DatabaseConfig(),
            monitoring=MonitoringConfig(),
            logging=LoggingConfig()
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)

        return cls(
            program=ProgramConfig(**data.get('program', {})),
            database=DatabaseConfig(**data.get('database', {})),
            monitoring=MonitoringConfig(**data.get('monitoring', {})),
            logging=LoggingConfig(**data.get('logging', {}))
        )

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'program': asdict(self.program),
            'database': asdict(self.database),
            'monitoring': asdict(self.monitoring),
            'logging': asdict(self.logging)
        }
