import uvicorn

from lobby.config import get_config


def main() -> None:
    config = get_config()
    uvicorn.run(
        "lobby.main:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=False,
        log_level=config.server.log_level,
    )


if __name__ == "__main__":
    main()
