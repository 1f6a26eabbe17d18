"""booklib entrypoint.

Run with:
  python -m booklib
"""

import uvicorn

from .settings import settings

def main() -> None:
    uvicorn.run("booklib.main:app", host=settings.HOST, port=settings.PORT)

if __name__ == "__main__":
    main()
