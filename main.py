import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from config import settings
from contact_store import ContactStore
from db_models import IdentifyRequest, FinalResponse
from errors import InvalidRequest, StorageFailure
from resolver import IdentityResolver

logger = logging.getLogger(__name__)

_store = None


def get_store() -> ContactStore:
    global _store
    if _store is None:
        _store = ContactStore(settings.db_path, settings.busy_timeout_seconds)
    return _store


def get_resolver(store: ContactStore = Depends(get_store)) -> IdentityResolver:
    return IdentityResolver(store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s: %(message)s")
    get_store()
    logger.info(f"Contact database ready at {settings.db_path}")
    yield


app = FastAPI(
    title="Bitespeed Contact Reconciliation API",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request: Request, exc: InvalidRequest):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    logger.error(f"Storage failure on {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
async def root():
    return {"message": "Bitespeed API is up"}


@app.get("/health")
def health(store: ContactStore = Depends(get_store)):
    if not store.ping():
        return JSONResponse(status_code=503, content={"status": "unhealthy"})
    return {"status": "healthy"}


# sync handler: sqlite calls block, so FastAPI runs this in its threadpool
@app.post("/identify", response_model=FinalResponse)
def identify(request: IdentifyRequest, resolver: IdentityResolver = Depends(get_resolver)):
    contact = resolver.resolve(request.email, request.phoneNumber)
    return FinalResponse(contact=contact)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
