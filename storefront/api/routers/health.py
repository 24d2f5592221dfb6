from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request):
    database = request.app.state.database
    try:
        database.ping()
        return {"status": "ok", "database": "ok"}
    except Exception as e:
        return {"status": "degraded", "database": str(e)}
