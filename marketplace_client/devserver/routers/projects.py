import math

from fastapi import APIRouter, HTTPException, status, Query

from marketplace_client.devserver.store import get_store_instance, InMemoryStore

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.get("/open")
async def list_open_projects(page: int = Query(1, ge=1), per_page: int = Query(10, ge=1, le=100)):
    store: InMemoryStore = get_store_instance()

    open_projects = store.query(collection_name="projects", field="status", operator="==", value="open")
    open_projects.sort(key=lambda project: project["id"])

    total = len(open_projects)
    start = (page - 1) * per_page
    # Laravel-style paginator payload
    return {
        "data": open_projects[start:start + per_page],
        "current_page": page,
        "last_page": max(1, math.ceil(total / per_page)),
        "per_page": per_page,
        "total": total,
    }


@router.get("/{project_id}")
async def get_project(project_id: int):
    store: InMemoryStore = get_store_instance()
    project = store.get("projects", project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return {"data": project}
