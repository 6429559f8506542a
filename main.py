from fastapi import FastAPI, HTTPException

from api.app import create_app
from image_splitter import __version__
from image_splitter.errors import ConfigError

try:
    app = create_app()
except ConfigError as _config_error:
    _reason = str(_config_error)
    app = FastAPI(title="Image Splitter", version=__version__)

    @app.get("/")
    async def config_invalid() -> dict[str, str]:
        raise HTTPException(
            status_code=503,
            detail=f"Image splitter is not configured: {_reason}. Fix config.toml or IMGSPLIT_* variables.",
        )
