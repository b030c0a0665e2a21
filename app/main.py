import uvicorn

from app.core.app_factory import create_app
from app.core.config import settings

app = create_app()


if __name__ == "__main__":
    uvicorn.run("app.main:app", host=settings.app.host, port=settings.app.port)
