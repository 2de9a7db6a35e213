# geosaude/main.py
from dotenv import load_dotenv

load_dotenv()

import logging
import os
from fastapi import FastAPI
import uvicorn
from contextlib import asynccontextmanager
from geosaude.api import debug, distances, geocoding
from geosaude.core.config import LOG_LEVEL
from geosaude.core.registry import set_store
from geosaude.core.loader import load_store

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    handlers=[logging.StreamHandler()],
)


@asynccontextmanager
async def lifespan(app: FastAPI):

    # Tests install their own store with fake providers
    if os.environ.get("TESTING"):
        print("⚠️ Skipping lifespan (test mode)")
        yield
        return

    print("🚀 App starting up, loading facilities and geocoding cache...")
    store = load_store()
    await store.startup()
    set_store(store)
    app.state.store = store

    yield

    await store.shutdown()
    set_store(None)
    print("🧹 App shutting down, cleanup complete.")


app = FastAPI(lifespan=lifespan, title="GeoSaúde Georeferencing API")

app.include_router(geocoding.router)
app.include_router(distances.router)
app.include_router(debug.router)


if __name__ == "__main__":
    uvicorn.run("geosaude.main:app", host="0.0.0.0", port=8000)
