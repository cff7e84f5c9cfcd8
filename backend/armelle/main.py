# /armelle/main.py

import os
import time
import asyncio
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from armelle.config.settings import settings
from armelle.utils.lifecycle import lifespan
from armelle.utils.metrics import response_time_histogram
from armelle.routes import bot, public

# Initialize the FastAPI application
app = FastAPI(
    title="Armelle Tax Assistant Bot",
    version="1.0.0",
    description="Conversational workflow core of the Armelle tax assistant",
    lifespan=lifespan,
    openapi_url=f"/api/{settings.api_version}/openapi.json" if settings.environment != "production" else None,
    docs_url=f"/api/{settings.api_version}/docs" if settings.environment != "production" else None,
    redoc_url=None,
)

# --- Middleware ---
@app.middleware("http")
async def performance_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response_time_histogram.labels(endpoint=request.url.path).observe(process_time)
    response.headers["X-Process-Time"] = str(process_time)
    return response

@app.middleware("http")
async def timeout_middleware(request: Request, call_next):
    try:
        return await asyncio.wait_for(call_next(request), timeout=30.0)
    except asyncio.TimeoutError:
        return JSONResponse({"detail": "Request timed out"}, status_code=504)

# --- API Routers ---
app.include_router(public.router)
app.include_router(bot.router, prefix=f"/api/{settings.api_version}")

# --- Main Entry Point for Uvicorn (for local development) ---
if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "127.0.0.1")

    uvicorn.run(
        "armelle.main:app",
        host=host,
        port=port,
        reload=settings.environment == "development",
    )
