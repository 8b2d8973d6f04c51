from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
import logging # Add logging config

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

from . import config
from .services import story_service
from .routers import registration, reconciliation
from .routers.registration import error_response

logger = logging.getLogger(__name__)


def check_wallet_balance():
    """Warns when the server wallet is too low on IP tokens to pay gas."""
    try:
        balance = story_service.get_wallet_balance()
    except Exception as e:
        logger.error(f"Could not check balance: {e}")
        return
    logger.info(f"Balance: {balance:.4f} IP tokens")
    if balance < config.LOW_BALANCE_THRESHOLD:
        logger.warning(
            f"Low balance! You need IP tokens for gas fees. "
            f"Get testnet tokens: https://faucet.story.foundation/ (address: {story_service.account.address})"
        )


def log_record_store_mode():
    if not config.SUPABASE_URL or not config.SUPABASE_KEY:
        logger.warning("Supabase credentials NOT found. IP registration will work, but data won't be saved to the database.")
        return
    logger.info(f"Supabase credentials loaded. URL: {config.SUPABASE_URL}, key: {config.SUPABASE_KEY[:20]}...")
    if not config.SUPABASE_SERVICE_ROLE_KEY:
        logger.warning("Using SUPABASE_ANON_KEY instead of SUPABASE_SERVICE_ROLE_KEY. This may cause RLS policy issues with updates.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A missing or invalid PRIVATE_KEY raises ConfigurationError and aborts startup
    story_service.init_client()
    check_wallet_balance()
    log_record_store_mode()
    logger.info(
        f"DeepShare IP Registration Server ready. Port: {config.PORT}, network: {config.CHAIN_ID}, RPC: {config.RPC_URL}, "
        f"default license fee: {config.DEFAULT_MINTING_FEE} IP tokens, default revenue share: {config.DEFAULT_COMMERCIAL_REV_SHARE}%"
    )
    yield


app = FastAPI(
    title="DeepShare IP Registration",
    description="Registers captured images with depth metadata as Story Protocol IP assets.",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS Configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(registration.router)
app.include_router(reconciliation.router)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are client errors like any other validation failure: 400, not 422."""
    errors = [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]
    logger.warning(f"Rejected malformed request to {request.url.path}: {errors}")
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request body", details={"errors": errors})


@app.get("/health", tags=["Health Check"])
def health():
    """Liveness check."""
    return {"status": "ok", "service": "DeepShare IP Registration"}


# --- Server Startup (for local development) ---
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("deepshare_ip.main:app", host="0.0.0.0", port=config.PORT)
