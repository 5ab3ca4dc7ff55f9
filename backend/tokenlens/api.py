from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional, Union
import json
import logging
import time
from pydantic import BaseModel, PositiveInt, ValidationError, field_validator
from tokenlens.errors import (
    EncodingError,
    InvalidIdentifierError,
    LoadError,
    TokenizerError,
    UnsupportedModelError,
)
from tokenlens.models.catalog import (
    ALL_MODELS,
    OAI_ENCODINGS,
    POPULAR,
    all_options,
    classify,
    is_valid_option,
)
from tokenlens.models.tokens import TokenizeOptions
from tokenlens.services.cache import TokenizerCache, get_tokenizer_cache

router = APIRouter()
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidIdentifierError: 400,
    UnsupportedModelError: 422,
    LoadError: 502,
    EncodingError: 500,
}


class EncoderRequest(BaseModel):
    text: str
    encoder: str
    count_only: bool = False

    @field_validator("encoder")
    @classmethod
    def validate_encoder(cls, v: str) -> str:
        if v not in OAI_ENCODINGS:
            raise ValueError(f"Unknown encoder: {v}")
        return v


class ModelRequest(BaseModel):
    text: str
    model: str
    count_only: bool = False

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        if v not in ALL_MODELS:
            raise ValueError(f"Unknown model: {v}")
        return v


class EncodeRequest(BaseModel):
    text: str
    model: str
    fast_mode: bool = False
    chunk_size: Optional[PositiveInt] = None
    max_tokens: Optional[PositiveInt] = None
    remote_host: Optional[str] = None

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        if not is_valid_option(v):
            raise ValueError(f"Unknown model or encoding: {v}")
        return v


def parse_tokens_request(data: Dict[str, Any]) -> Union[EncoderRequest, ModelRequest]:
    """Validate merged request data as an encoder request or a model request."""
    if isinstance(data.get("count_only"), str):
        data["count_only"] = data["count_only"].lower() == "true"

    if "encoder" in data:
        return EncoderRequest.model_validate(data)
    return ModelRequest.model_validate(data)


def error_response(error: TokenizerError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(error), 500)
    return JSONResponse(status_code=status_code, content=error.to_dict())


async def _merged_request_data(request: Request) -> Dict[str, Any]:
    """Body fields overlaid with query parameters; the query wins."""
    data: Dict[str, Any] = {}
    if request.method == "POST":
        raw = await request.body()
        if raw:
            body = json.loads(raw)
            if isinstance(body, dict):
                data.update(body)
    data.update(request.query_params)
    return data


@router.api_route("/api/v1/tokens", methods=["GET", "POST"])
async def count_tokens(
    request: Request,
    cache: TokenizerCache = Depends(get_tokenizer_cache)
):
    """Tokenize text with an encoder or a model and return ids and count."""
    try:
        data = await _merged_request_data(request)
        params = parse_tokens_request(data)
    except ValidationError as e:
        logger.error(f"Invalid tokens request: {str(e)}")
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request parameters", "details": json.loads(e.json())},
        )
    except json.JSONDecodeError as e:
        logger.error(f"Malformed tokens request body: {str(e)}")
        return JSONResponse(status_code=400, content={"error": "Malformed JSON body"})

    identifier = params.encoder if isinstance(params, EncoderRequest) else params.model

    start_time = time.time()
    try:
        tokenizer = await cache.get_or_create(identifier)
        result = tokenizer.tokenize(params.text, TokenizeOptions(fast_mode=True))
    except TokenizerError as e:
        logger.error(f"Token calculation failed for {identifier}: {e.message}")
        return error_response(e)
    processing_time = time.time() - start_time
    logger.info(f"Counted {result.count} tokens with {result.name} in {processing_time:.4f}s")

    return result.to_dict(count_only=params.count_only)


@router.post("/api/v1/encode")
async def encode(
    request: EncodeRequest,
    cache: TokenizerCache = Depends(get_tokenizer_cache)
):
    """Tokenize text and return ids, count and the segment breakdown."""
    options = TokenizeOptions(
        fast_mode=request.fast_mode,
        chunk_size=request.chunk_size,
        max_tokens=request.max_tokens,
    )

    start_time = time.time()
    try:
        tokenizer = await cache.get_or_create(request.model, request.remote_host)
        result = tokenizer.tokenize(request.text, options)
    except TokenizerError as e:
        logger.error(f"Encoding failed for {request.model}: {e.message}")
        return error_response(e)
    processing_time = time.time() - start_time

    response = result.model_dump()
    response["processing_time"] = processing_time
    return response


@router.get("/api/v1/models")
async def list_models():
    """List every accepted model and encoding identifier."""
    return {
        "models": [
            {"id": identifier, "kind": classify(identifier).value}
            for identifier in all_options()
        ],
        "popular": POPULAR,
    }


@router.get("/health")
async def health(cache: TokenizerCache = Depends(get_tokenizer_cache)):
    return {"status": "ok", "cache": cache.stats()}
