import os

from ghttpping.main import app


def main() -> None:
    import uvicorn

    host = os.getenv("GHTTPPING_HOST", "127.0.0.1")
    port = int(os.getenv("GHTTPPING_PORT", "4020"))
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
