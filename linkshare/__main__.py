"""Run the server: ``python -m linkshare``."""
import uvicorn

from linkshare.config import settings


def main() -> None:
    uvicorn.run("linkshare.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
