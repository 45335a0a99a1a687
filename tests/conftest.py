import sys
from pathlib import Path

# Ensure repo root is on sys.path so `import avatar_etl` works under all pytest import modes.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from avatar_etl.config import Config  # noqa: E402


@pytest.fixture
def make_config(tmp_path):
    """Build a :class:`Config` pointing at test hosts, with overrides."""

    def _make(**overrides) -> Config:
        values = dict(
            chains_url="https://dir.test/chains.json",
            network="mainnet",
            skip_chains=frozenset(),
            offset_chains=frozenset(),
            offset_lcds=frozenset(),
            page_size=100,
            max_pages=1000,
            concurrency=2,
            images_dir=tmp_path / "images",
            keybase_url="https://keybase.test/_/api/1.0",
            task_timeout=None,
            submit_interval=0.0,
            http_max=4,
            req_timeout=5.0,
            dl_timeout=5.0,
            chunk_size=1024,
        )
        values.update(overrides)
        return Config(**values)

    return _make
