"""
Configuration loading and the administration tool.
"""
import json
import os
import shutil
import tempfile

import pytest
from solders.pubkey import Pubkey

from amm_pool.config import Config, ProgramConfig
from amm_pool.crypto import program_id_from_name
from amm_pool import pool_tool


@pytest.fixture
def workdir():
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


class TestConfig:

    def test_defaults(self):
        config = Config.default()
        assert config.program.name == "amm_pool"
        assert config.database.compression == "snappy"
        assert not config.monitoring.enabled
        assert config.logging.level == "INFO"

    def test_file_round_trip(self, workdir):
        path = os.path.join(workdir, "nested", "config.json")
        config = Config.default()
        config.database.path = "/var/lib/pool"
        config.monitoring.port = 9191
        config.to_file(path)

        loaded = Config.from_file(path)
        assert loaded == config

    def test_partial_file_uses_defaults(self, workdir):
        path = os.path.join(workdir, "config.json")
        with open(path, 'w') as f:
            json.dump({"logging": {"level": "DEBUG"}}, f)

        loaded = Config.from_file(path)
        assert loaded.logging.level == "DEBUG"
        assert loaded.database.path == "./pool_data"

    def test_program_id_derived_from_name(self):
        assert ProgramConfig(name="pools").resolve_program_id() == program_id_from_name("pools")
        assert ProgramConfig(name="pools").resolve_program_id() != program_id_from_name("other")

    def test_explicit_program_id(self):
        program_id = Pubkey.new_unique()
        assert ProgramConfig(program_id=str(program_id)).resolve_program_id() == program_id


class TestPoolTool:

    def write_config(self, workdir):
        path = os.path.join(workdir, "config.json")
        config = Config.default()
        config.database.path = os.path.join(workdir, "db")
        config.to_file(path)
        return path

    def test_sample_config(self, workdir, capsys):
        path = os.path.join(workdir, "sample.json")
        pool_tool.main(["sample-config", "--output", path])
        assert Config.from_file(path) == Config.default()
        assert "Generated sample configuration" in capsys.readouterr().out

    def test_demo_then_inspect_and_quote(self, workdir, capsys):
        config_path = self.write_config(workdir)
        pool_tool.main(["--config", config_path, "demo",
                        "--deposit-a", "1000", "--deposit-b", "1000", "--swap", "100"])
        out = capsys.readouterr().out
        assert "Demo pool created successfully!" in out
        assert "user token B balance: 90" in out

        pool_line = next(line for line in out.splitlines() if line.strip().startswith("- pool:"))
        pool_address = pool_line.split(":", 1)[1].strip()

        pool_tool.main(["--config", config_path, "inspect", pool_address])
        out = capsys.readouterr().out
        assert '"token_a_reserve": "1100"' in out
        assert '"token_b_reserve": "910"' in out

        pool_tool.main(["--config", config_path, "quote", pool_address, "100"])
        # reserves (1100, 910): 910 - ceil(1001000 / 1199) = 75
        assert "would return 75" in capsys.readouterr().out

        pool_tool.main(["--config", config_path, "pools"])
        out = capsys.readouterr().out
        assert "1 pool(s) under program" in out
        assert f"- {pool_address}: 1100 A / 910 B, 1000 shares" in out

    def test_error_code(self, capsys):
        pool_tool.main(["error", "4"])
        out = capsys.readouterr().out
        assert "Error 4: InsufficientLiquidity" in out
        assert "no reserves" in out

    def test_unknown_error_code(self):
        with pytest.raises(ValueError):
            pool_tool.main(["error", "99"])
