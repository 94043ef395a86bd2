from __future__ import annotations

import uvicorn

from streamgate.common.settings import get_settings


def main() -> None:
    cfg = get_settings()
    uvicorn.run(
        "streamgate.services.api.app:create_app",
        factory=True,
        host=cfg.api.host,
        port=cfg.api.port,
        log_level=cfg.log_level.lower(),
    )


if __name__ == "__main__":
    main()
