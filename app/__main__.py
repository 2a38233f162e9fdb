import uvicorn

from .config import Settings
from .main import create_app


def main():
    settings = Settings.from_env()
    # uvicorn turns SIGINT/SIGTERM into a lifespan shutdown, which closes storage
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
