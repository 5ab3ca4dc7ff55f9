from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from tokenlens.api import router as api_router
from tokenlens.config import settings
from tokenlens.services.cache import tokenizer_cache

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Create FastAPI app
app = FastAPI(title="tokenlens API")

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router)


@app.on_event("startup")
async def on_startup():
    logging.info(
        f"Tokenizer cache ready (max_entries={tokenizer_cache.max_entries}, ttl={tokenizer_cache.ttl})"
    )


# Release tiktoken encodings held by the cache
@app.on_event("shutdown")
async def on_shutdown():
    released = tokenizer_cache.clear()
    logging.info(f"Released {released} cached tokenizers")
