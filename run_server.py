import uvicorn
import os
from photoshoot.config.settings import settings

if __name__ == "__main__":
    # Ensure the blob directory exists before the static mount
    os.makedirs(settings.blob_dir, exist_ok=True)

    print(f"🚀 Starting Photoshoot API on {settings.api_host}:{settings.api_port} ({settings.backend} backend)...")
    uvicorn.run(
        "api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
