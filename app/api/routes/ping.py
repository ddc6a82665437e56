from fastapi import APIRouter, HTTPException, Request

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health check")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/db", summary="Database connectivity check")
async def ping_database(request: Request) -> dict[str, str]:
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise HTTPException(status_code=503, detail="Database is not configured")
    try:
        await database.test_connection()
    except Exception as exc:
        raise HTTPException(status_code=503, detail="Database is unreachable") from exc
    return {"status": "ok"}
