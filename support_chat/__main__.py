"""启动 HTTP 服务：python -m support_chat"""

import uvicorn

from support_chat.api.app import create_app
from support_chat.config.settings import settings


def main() -> None:
    uvicorn.run(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
