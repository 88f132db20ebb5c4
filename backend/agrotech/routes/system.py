from fastapi import APIRouter, Depends

from .. import schemas
from ..auth import get_backend

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/config", response_model=schemas.ConfigOut)
def public_config(backend=Depends(get_backend)):
    # only the public URL and anon key; the service role key stays server-side
    return schemas.ConfigOut(supabase_url=backend.url, supabase_anon_key=backend.anon_key)
