"""Mission Control 启动入口 -- python -m missioncontrol.gateway"""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "missioncontrol.gateway.main:app",
        host=os.environ.get("MC_HOST", "127.0.0.1"),
        port=int(os.environ.get("MC_PORT", "4000")),
    )


if __name__ == "__main__":
    main()
