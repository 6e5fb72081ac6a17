import getpass
import sys
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from batcher.config import setting
from batcher.errors import ChainUnavailable, TransferError
from batcher.orchestrator import TransferOrchestrator
from batcher.wallet_secret import resolve_mnemonic
from schema import ErrorResponse, HealthResponse, TransferResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Any failure here aborts startup before requests are served
    mnemonic = resolve_mnemonic(setting.seed_phrase, setting.cipher_text, setting.password)

    from batcher.ton_client import TonChainClient

    client = await TonChainClient.connect(setting, mnemonic)
    app.state.orchestrator = TransferOrchestrator(client, setting)
    try:
        yield
    finally:
        await client.close()


# Rate limiter setup
limiter = Limiter(key_func=get_remote_address)

# Initialize FastAPI app
app = FastAPI(
    title="TON Batch Transfer API",
    description="Sends batches of TON transfers from a custodial highload wallet",
    version="1.0.0",
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TransferError)
async def transfer_error_handler(request: Request, exc: TransferError):
    request_id = getattr(request.state, "request_id", "-")
    logger.warning(f"Request {request_id} failed with {exc.kind.value}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def get_orchestrator(request: Request) -> TransferOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise ChainUnavailable("Wallet is not initialized")
    return orchestrator


# Middleware for request logging
@app.middleware("http")
async def log_request(request: Request, call_next):
    start_time = time.time()
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Request {request_id}: {request.method} {request.url.path} from {client_host}")

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"Error {request_id}: {str(e)}, Occurred after {process_time:.3f}s")
        raise

    process_time = time.time() - start_time
    logger.info(
        f"Response {request_id}: Status {response.status_code}, "
        f"Completed in {process_time:.3f}s"
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/health", response_model=HealthResponse, responses={503: {"model": ErrorResponse}})
async def health(orchestrator: TransferOrchestrator = Depends(get_orchestrator)):
    return HealthResponse(status="ok", wallet=orchestrator.client.wallet_address)


@app.post(
    "/sendTransactions",
    response_model=TransferResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
@limiter.limit(setting.rate_limit)
async def send_transactions(
    request: Request,
    send_mode: str | None = None,
    comment: str | None = None,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
):
    """Send every transfer in the body as one transaction and wait for it"""
    body = await request.body()
    receipt = await orchestrator.send_transactions(send_mode, comment, body)
    return TransferResponse(txHash=receipt.tx_hash_b64, link=receipt.link)


if __name__ == "__main__":
    if not setting.seed_phrase and setting.cipher_text and not setting.password:
        setting.password = getpass.getpass(prompt="Please enter your password: ")

    try:
        resolve_mnemonic(setting.seed_phrase, setting.cipher_text, setting.password)
        logger.info("Wallet mnemonic loaded")
    except Exception as e:
        logger.error(f"Failed to load wallet mnemonic: {str(e)}")
        sys.exit(1)

    # Launch the FastAPI app
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=setting.port, reload=False)
