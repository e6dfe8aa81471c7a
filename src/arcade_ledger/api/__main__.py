# src/arcade_ledger/api/__main__.py
from __future__ import annotations

import uvicorn

from arcade_ledger.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so ARCADE_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from arcade_ledger.api.app import create_app
    from arcade_ledger.runtime.node_config import apply_node_config_to_env, load_node_config

    cfg = load_node_config()
    apply_node_config_to_env(cfg)

    uvicorn.run(create_app(), host=cfg.api_host, port=int(cfg.api_port), log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
